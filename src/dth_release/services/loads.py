"""Load service: the surface consumed by the HTTP layer and the CLI."""

from datetime import datetime
from typing import Any, Callable, Iterable, Optional, Union

import pydantic
import structlog

from ..clock import utc_now
from ..db import Repository
from ..errors import NotFound, ValidationError
from ..models import (
    CurrentUser,
    Load,
    LoadCreate,
    LoadFields,
    LoadStatus,
    LoadUpdate,
    NotificationEvent,
    ReleaseLogEntry,
)
from .identifiers import IdentifierGenerator
from .notifications import NotificationDispatcher
from .release import ReleaseStateMachine

logger = structlog.get_logger(__name__)


def _parse(model: type[LoadFields], payload: Union[LoadFields, dict[str, Any]]) -> LoadFields:
    if isinstance(payload, model):
        return payload
    if isinstance(payload, LoadFields):
        payload = payload.model_dump()
    try:
        return model.model_validate(payload)
    except pydantic.ValidationError as e:
        first = e.errors()[0]
        location = ".".join(str(part) for part in first["loc"])
        raise ValidationError(f"{location}: {first['msg']}") from e


class LoadService:
    """
    Create, read, edit and delete loads.

    Status changes are delegated to the ReleaseStateMachine; this class never
    writes status, PIN or log rows itself.
    """

    def __init__(
        self,
        repository: Repository,
        identifiers: IdentifierGenerator,
        state_machine: ReleaseStateMachine,
        notifier: NotificationDispatcher,
        clock: Callable[[], datetime] = utc_now,
        required_fields: Iterable[str] = ("pickup_window_start", "pickup_window_end"),
    ):
        self.repository = repository
        self.identifiers = identifiers
        self.state_machine = state_machine
        self.notifier = notifier
        self.clock = clock
        self.required_fields = tuple(required_fields)

    def _check_fields(self, fields: LoadFields) -> None:
        missing = [
            name for name in self.required_fields
            if getattr(fields, name, None) in (None, "")
        ]
        if missing:
            raise ValidationError(f"Missing required field(s): {', '.join(missing)}")

        start, end = fields.pickup_window_start, fields.pickup_window_end
        if start and end and end < start:
            raise ValidationError("Pickup window end must be after its start")

    # =========================================================================
    # Create
    # =========================================================================

    def create_load(
        self,
        payload: Union[LoadCreate, dict[str, Any]],
        acting_user: Optional[CurrentUser] = None,
    ) -> Load:
        """Create a DRAFT load and mail its document to the creator."""
        data = _parse(LoadCreate, payload)
        self._check_fields(data)

        if data.load_id:
            if self.repository.load_id_exists(data.load_id):
                raise ValidationError(f"Load ID {data.load_id} already exists")
            load_id = data.load_id
        else:
            load_id = self.identifiers.generate_load_id()

        if acting_user is not None:
            self.repository.upsert_user(acting_user)

        load = self.repository.insert_load(
            data,
            load_id=load_id,
            pin=self.identifiers.generate_pin(),
            verification_token=self.identifiers.generate_token(),
            created_by=acting_user.id if acting_user else None,
            now=self.clock(),
        )
        logger.info(
            "load_created",
            load_id=load.load_id,
            created_by=load.created_by,
        )

        if acting_user is not None and acting_user.email:
            self.notifier.submit(NotificationEvent.CREATED, load, recipient=acting_user.email)
        return load

    # =========================================================================
    # Read
    # =========================================================================

    def list_loads(self, status: Optional[LoadStatus] = None) -> list[Load]:
        return self.repository.list_loads(status=status)

    def get_load_by_id(self, load_pk: int) -> Load:
        """Full record, with the latest confirmation when USED."""
        load = self.repository.get_load(load_pk)
        if load is None:
            raise NotFound()
        return load

    def get_load_by_token(self, token: str) -> Load:
        """Record joined with the creator's email and name. Internal use only."""
        load = self.repository.get_load_by_token(token)
        if load is None:
            raise NotFound("Invalid verification link")
        return load

    def get_release_logs(self) -> list[ReleaseLogEntry]:
        return self.repository.get_release_logs()

    # =========================================================================
    # Edit / delete
    # =========================================================================

    def update_load(self, load_pk: int, payload: Union[LoadUpdate, dict[str, Any]]) -> Load:
        """Overwrite every editable attribute. Status, PIN, token and id are untouched."""
        data = _parse(LoadUpdate, payload)
        self._check_fields(data)

        load = self.repository.update_load_fields(load_pk, data, self.clock())
        if load is None:
            raise NotFound()
        logger.info("load_updated", load_id=load.load_id)
        return load

    def delete_load(self, load_pk: int) -> Load:
        """Delete a load together with its log rows. Returns the removed record."""
        load = self.get_load_by_id(load_pk)
        if not self.repository.delete_load(load_pk):
            raise NotFound()
        logger.info("load_deleted", load_id=load.load_id)
        return load

    # =========================================================================
    # Transitions
    # =========================================================================

    def validate(self, load_pk: int) -> Load:
        return self.state_machine.validate(load_pk)

    def void(self, load_pk: int) -> Load:
        return self.state_machine.void(load_pk)

    def update_status(self, load_pk: int, status: Union[LoadStatus, str]) -> Load:
        return self.state_machine.update_status(load_pk, status)

    def confirm_release(
        self,
        *,
        token: str,
        pin: Optional[str],
        confirmed_by: Optional[str] = None,
    ) -> Load:
        return self.state_machine.confirm_release(token=token, pin=pin, confirmed_by=confirmed_by)
