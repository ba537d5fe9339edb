"""Enumerations for the release portal."""

from enum import Enum


class LoadStatus(str, Enum):
    """Lifecycle status of a load."""

    DRAFT = "DRAFT"
    VALID = "VALID"
    USED = "USED"  # Terminal, set only by release confirmation
    VOID = "VOID"  # Terminal override

    @property
    def is_terminal(self) -> bool:
        return self in (LoadStatus.USED, LoadStatus.VOID)


class LoadAction(str, Enum):
    """Audit log action tags."""

    RELEASE_CONFIRMED = "RELEASE_CONFIRMED"


class NotificationEvent(str, Enum):
    """Events that trigger a document + email side effect."""

    CREATED = "created"
    VALIDATED = "validated"
    RELEASED = "released"
