"""
Services for pairlink.

The link service talks HTTP; the coordinator drives a linking attempt
against any RemoteLinkService.
"""

from pairlink.services.coordinator import CoordinatorSnapshot, LinkingCoordinator
from pairlink.services.link_service import PinLinkService, RemoteLinkService

__all__ = [
    "LinkingCoordinator",
    "CoordinatorSnapshot",
    "RemoteLinkService",
    "PinLinkService",
]
