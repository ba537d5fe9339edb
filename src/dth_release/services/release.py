"""
Release state machine.

DRAFT -> VALID -> USED, with VOID as a terminal override. USED is only ever
reached through ``confirm_release``, the one-time PIN protocol used by the
dealer at pickup.
"""

import secrets
from datetime import datetime
from typing import Callable, Optional, Union

import structlog

from ..clock import format_display_time, utc_now
from ..db import Repository
from ..errors import (
    AlreadyUsed,
    ConfirmationError,
    InvalidPin,
    InvalidTransition,
    NotFound,
    NotReleasable,
    NotYetActive,
    ValidationError,
    WindowExpired,
)
from ..models import Load, LoadAction, LoadStatus, NotificationEvent
from .notifications import NotificationDispatcher

logger = structlog.get_logger(__name__)


# Transitions permitted by update_status in strict mode
ALLOWED_TRANSITIONS: dict[LoadStatus, frozenset[LoadStatus]] = {
    LoadStatus.DRAFT: frozenset({LoadStatus.VALID, LoadStatus.VOID}),
    LoadStatus.VALID: frozenset({LoadStatus.VOID}),
    LoadStatus.USED: frozenset(),
    LoadStatus.VOID: frozenset(),
}

NON_TERMINAL = tuple(status for status in LoadStatus if not status.is_terminal)


class ReleaseStateMachine:
    """
    Owns every write to a load's status and to the audit log.

    Each transition is a single compare-and-set against the store, so two
    concurrent confirmations of the same load cannot both succeed.
    """

    def __init__(
        self,
        repository: Repository,
        notifier: NotificationDispatcher,
        clock: Callable[[], datetime] = utc_now,
        strict_transitions: bool = False,
        allow_void_after_release: bool = True,
        display_timezone: str = "UTC",
    ):
        self.repository = repository
        self.notifier = notifier
        self.clock = clock
        self.strict_transitions = strict_transitions
        self.allow_void_after_release = allow_void_after_release
        self.display_timezone = display_timezone

    def _require(self, load_pk: int) -> Load:
        load = self.repository.get_load(load_pk)
        if load is None:
            raise NotFound()
        return load

    # =========================================================================
    # Operator transitions
    # =========================================================================

    def validate(self, load_pk: int) -> Load:
        """Promote a non-terminal load to VALID and notify dispatch."""
        promoted = self.repository.compare_and_set_status(
            load_pk,
            LoadStatus.VALID,
            self.clock(),
            expected=NON_TERMINAL,
        )
        if not promoted:
            current = self._require(load_pk)
            raise InvalidTransition(f"Cannot validate a load in {current.status.value} status")

        load = self._require(load_pk)
        logger.info("load_validated", load_id=load.load_id)
        self.notifier.submit(NotificationEvent.VALIDATED, load)
        return load

    def void(self, load_pk: int) -> Load:
        """Set VOID. Also allowed after release unless configured otherwise."""
        expected = None
        if not self.allow_void_after_release:
            expected = (LoadStatus.DRAFT, LoadStatus.VALID, LoadStatus.VOID)

        voided = self.repository.compare_and_set_status(
            load_pk, LoadStatus.VOID, self.clock(), expected=expected
        )
        if not voided:
            self._require(load_pk)
            raise InvalidTransition("Cannot void a load that has already been released")

        load = self._require(load_pk)
        logger.info("load_voided", load_id=load.load_id)
        return load

    def update_status(self, load_pk: int, status: Union[LoadStatus, str]) -> Load:
        """
        Administrative status override.

        Unconstrained by default. With ``strict_transitions`` only the edges
        in ALLOWED_TRANSITIONS are accepted.
        """
        try:
            new_status = LoadStatus(status)
        except ValueError:
            raise ValidationError(f"Invalid status: {status}") from None

        expected = None
        if self.strict_transitions:
            current = self._require(load_pk)
            if new_status not in ALLOWED_TRANSITIONS[current.status]:
                raise InvalidTransition(
                    f"Cannot change status from {current.status.value} to {new_status.value}"
                )
            expected = (current.status,)

        updated = self.repository.compare_and_set_status(
            load_pk, new_status, self.clock(), expected=expected
        )
        if not updated:
            self._require(load_pk)
            raise InvalidTransition("Load status changed while updating, please retry")

        load = self._require(load_pk)
        logger.info("load_status_updated", load_id=load.load_id, status=new_status.value)
        return load

    # =========================================================================
    # Release confirmation
    # =========================================================================

    def _check_releasable(self, load: Load, pin: Optional[str], now: datetime) -> None:
        # Replay detection first, so a retry after success reads ALREADY USED
        if load.status == LoadStatus.USED:
            raise AlreadyUsed()
        if load.status != LoadStatus.VALID:
            raise NotReleasable()

        if load.pickup_window_start and now < load.pickup_window_start:
            raise NotYetActive(format_display_time(load.pickup_window_start, self.display_timezone))
        if load.pickup_window_end and now > load.pickup_window_end:
            raise WindowExpired()

        if pin is None or not secrets.compare_digest(str(pin).encode(), load.pin.encode()):
            raise InvalidPin()

    def confirm_release(
        self,
        *,
        token: str,
        pin: Optional[str],
        confirmed_by: Optional[str] = None,
    ) -> Load:
        """
        One-time PIN confirmation of a vehicle release.

        Raises NotFound, AlreadyUsed, NotReleasable, NotYetActive,
        WindowExpired or InvalidPin, in that order of precedence. On success
        the load is USED, one RELEASE_CONFIRMED row exists, and the
        dispatcher notification has been submitted.
        """
        load = self.repository.get_load_by_token(token)
        if load is None:
            raise NotFound("Invalid verification link")

        now = self.clock()
        try:
            self._check_releasable(load, pin, now)
        except ConfirmationError as e:
            logger.info("release_rejected", load_id=load.load_id, reason=e.reason)
            raise

        released = self.repository.compare_and_set_status(
            load.id,
            LoadStatus.USED,
            now,
            expected=(LoadStatus.VALID,),
            log_action=LoadAction.RELEASE_CONFIRMED,
            log_details={"confirmedBy": confirmed_by, "timestamp": now.isoformat()},
            log_user_id=None,
        )
        if not released:
            # Lost the race against another confirmation or an operator action
            current = self._require(load.id)
            error = AlreadyUsed() if current.status == LoadStatus.USED else NotReleasable()
            logger.info("release_rejected", load_id=load.load_id, reason=error.reason)
            raise error

        updated = self._require(load.id)
        updated.dispatcher_email = load.dispatcher_email
        updated.dispatcher_name = load.dispatcher_name

        logger.info("release_confirmed", load_id=updated.load_id, confirmed_by=confirmed_by)
        self.notifier.submit(
            NotificationEvent.RELEASED,
            updated,
            confirmed_by=confirmed_by,
            confirmed_at=now,
        )
        return updated
