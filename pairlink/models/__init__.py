"""
Models for pairlink.

All data shapes defined here. No imports from services or the CLI.
"""

from pairlink.models.account import LinkedAccount
from pairlink.models.linking import (
    Authorized,
    Cancelled,
    Denied,
    Expired,
    Failed,
    Linked,
    LinkingSession,
    LinkState,
    Outcome,
    PairingExpired,
    PairingStatus,
    Pending,
)

__all__ = [
    # Session
    "LinkingSession",
    "LinkState",
    # Poll statuses
    "Pending",
    "Authorized",
    "Denied",
    "PairingExpired",
    "PairingStatus",
    # Outcomes
    "Linked",
    "Cancelled",
    "Expired",
    "Failed",
    "Outcome",
    # Accounts
    "LinkedAccount",
]
