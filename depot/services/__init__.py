"""Business logic services."""

from depot.services.access import AccessDecision, DenyReason, authorize, enforce
from depot.services.credentials import CredentialService

__all__ = [
    "AccessDecision",
    "CredentialService",
    "DenyReason",
    "authorize",
    "enforce",
]
