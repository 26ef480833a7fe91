"""Account models."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict


class LinkedAccount(BaseModel):
    """The account behind a credential, as reported by the link service."""

    model_config = ConfigDict(extra="ignore")

    id: int | str
    uuid: str | None = None
    username: str
    email: str | None = None
    title: str | None = None

    @property
    def display_name(self) -> str:
        return self.title or self.username
