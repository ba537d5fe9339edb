"""Data models for the DTH vehicle release portal."""

from .enums import LoadAction, LoadStatus, NotificationEvent
from .load import (
    CurrentUser,
    Load,
    LoadCreate,
    LoadFields,
    LoadLog,
    LoadUpdate,
    ReleaseConfirmation,
    ReleaseLogEntry,
)
from .verification import ConfirmationResult, DealerView

__all__ = [
    # Enums
    "LoadAction",
    "LoadStatus",
    "NotificationEvent",
    # Load
    "CurrentUser",
    "Load",
    "LoadCreate",
    "LoadFields",
    "LoadLog",
    "LoadUpdate",
    "ReleaseConfirmation",
    "ReleaseLogEntry",
    # Verification
    "ConfirmationResult",
    "DealerView",
]
