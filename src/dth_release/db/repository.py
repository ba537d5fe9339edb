"""SQL repository for loads and their audit log."""

import json
from datetime import datetime
from pathlib import Path
from typing import Iterable, Optional

from sqlalchemy import (
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    create_engine,
    delete,
    update,
)
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from ..clock import as_utc, utc_now
from ..errors import ValidationError
from ..models import (
    CurrentUser,
    Load,
    LoadAction,
    LoadFields,
    LoadLog,
    LoadStatus,
    ReleaseConfirmation,
    ReleaseLogEntry,
)

Base = declarative_base()


# =============================================================================
# SQLAlchemy Models (Database Tables)
# =============================================================================

class UserRecord(Base):
    """Identities seen through the auth provider, kept for creator lookups."""

    __tablename__ = "app_users"

    id = Column(Integer, primary_key=True, autoincrement=False)
    email = Column(String(255))
    full_name = Column(String(255))
    role = Column(Integer)
    created_at = Column(DateTime(timezone=True), default=utc_now)
    updated_at = Column(DateTime(timezone=True), default=utc_now, onupdate=utc_now)


class LoadRecord(Base):
    """SQLAlchemy model for loads table."""

    __tablename__ = "loads"

    id = Column(Integer, primary_key=True, autoincrement=True)
    load_id = Column(String(50), nullable=False, unique=True, index=True)

    # Pickup
    pickup_location = Column(Text)
    pickup_window_start = Column(DateTime(timezone=True))
    pickup_window_end = Column(DateTime(timezone=True))
    pickup_info = Column(Text)
    pickup_contact = Column(Text)

    # Vehicle
    vehicle_year = Column(Integer)
    vehicle_make = Column(String(100))
    vehicle_model = Column(String(100))
    vin_last_6 = Column(String(17))

    # Carrier & driver
    carrier_name = Column(String(255))
    driver_name = Column(String(255))
    driver_license_info = Column(String(255))
    driver_photo = Column(String(500))
    truck_plate = Column(String(50))
    trailer_plate = Column(String(50))

    custom_fields = Column(Text)  # JSON object

    # Security material, immutable after insert
    pin = Column(String(6), nullable=False)
    verification_token = Column(String(64), nullable=False, unique=True, index=True)

    status = Column(String(10), nullable=False, default=LoadStatus.DRAFT.value, index=True)

    created_by = Column(Integer, ForeignKey("app_users.id", ondelete="SET NULL"))
    created_at = Column(DateTime(timezone=True), default=utc_now, index=True)
    updated_at = Column(DateTime(timezone=True), default=utc_now)


class LoadLogRecord(Base):
    """SQLAlchemy model for the append-only load_logs table."""

    __tablename__ = "load_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    load_pk = Column(Integer, ForeignKey("loads.id", ondelete="CASCADE"), nullable=False, index=True)
    action = Column(String(50), nullable=False, index=True)
    details = Column(Text)  # JSON object
    user_id = Column(Integer)
    created_at = Column(DateTime(timezone=True), default=utc_now, index=True)


# Columns copied 1:1 between LoadFields and LoadRecord. custom_fields is
# serialized separately; status, pin, token and load_id are never in here.
EDITABLE_COLUMNS: tuple[str, ...] = (
    "pickup_location",
    "pickup_window_start",
    "pickup_window_end",
    "pickup_info",
    "pickup_contact",
    "vehicle_year",
    "vehicle_make",
    "vehicle_model",
    "vin_last_6",
    "carrier_name",
    "driver_name",
    "driver_license_info",
    "driver_photo",
    "truck_plate",
    "trailer_plate",
)


# =============================================================================
# Repository Class
# =============================================================================

class Repository:
    """Repository for database operations."""

    def __init__(self, database_url: str, echo: bool = False):
        self.database_url = database_url

        engine_kwargs: dict = {"echo": echo}
        if database_url.startswith("sqlite"):
            engine_kwargs["connect_args"] = {"check_same_thread": False}
            if database_url in ("sqlite://", "sqlite:///:memory:"):
                # One shared connection, otherwise every session sees an empty db
                engine_kwargs["poolclass"] = StaticPool
            else:
                db_path = Path(database_url.replace("sqlite:///", ""))
                db_path.parent.mkdir(parents=True, exist_ok=True)

        self.engine = create_engine(database_url, **engine_kwargs)
        self.SessionLocal = sessionmaker(bind=self.engine, autocommit=False, autoflush=False)

    def init_db(self) -> None:
        """Create all tables."""
        Base.metadata.create_all(self.engine)

    def dispose(self) -> None:
        self.engine.dispose()

    def get_session(self) -> Session:
        """Get a new database session."""
        return self.SessionLocal()

    # =========================================================================
    # Mapping
    # =========================================================================

    @staticmethod
    def _to_load(record: LoadRecord, creator: Optional[UserRecord] = None) -> Load:
        data = {name: getattr(record, name) for name in EDITABLE_COLUMNS}
        return Load(
            **data,
            custom_fields=json.loads(record.custom_fields) if record.custom_fields else {},
            id=record.id,
            load_id=record.load_id,
            pin=record.pin,
            verification_token=record.verification_token,
            status=LoadStatus(record.status),
            created_by=record.created_by,
            created_at=as_utc(record.created_at),
            updated_at=as_utc(record.updated_at),
            dispatcher_email=creator.email if creator else None,
            dispatcher_name=creator.full_name if creator else None,
        )

    @staticmethod
    def _apply_fields(record: LoadRecord, fields: LoadFields) -> None:
        for name in EDITABLE_COLUMNS:
            setattr(record, name, getattr(fields, name))
        record.custom_fields = json.dumps(fields.custom_fields or {}, default=str)

    @staticmethod
    def _to_log(record: LoadLogRecord) -> LoadLog:
        return LoadLog(
            id=record.id,
            load_pk=record.load_pk,
            action=LoadAction(record.action),
            details=json.loads(record.details) if record.details else {},
            user_id=record.user_id,
            created_at=as_utc(record.created_at),
        )

    def _latest_confirmation(self, session: Session, load_pk: int) -> Optional[ReleaseConfirmation]:
        record = (
            session.query(LoadLogRecord)
            .filter_by(load_pk=load_pk, action=LoadAction.RELEASE_CONFIRMED.value)
            .order_by(LoadLogRecord.created_at.desc(), LoadLogRecord.id.desc())
            .first()
        )
        if record is None:
            return None
        details = json.loads(record.details) if record.details else {}
        return ReleaseConfirmation(
            confirmed_by=details.get("confirmedBy"),
            timestamp=as_utc(record.created_at),
        )

    # =========================================================================
    # User Operations
    # =========================================================================

    def upsert_user(self, user: CurrentUser) -> None:
        """Record the acting identity so its email can be joined later."""
        with self.get_session() as session:
            record = session.get(UserRecord, user.id)
            if record is None:
                record = UserRecord(id=user.id)
                session.add(record)
            if user.email:
                record.email = user.email
            if user.full_name:
                record.full_name = user.full_name
            if user.role is not None:
                record.role = user.role
            session.commit()

    # =========================================================================
    # Load Operations
    # =========================================================================

    def load_id_exists(self, load_id: str) -> bool:
        with self.get_session() as session:
            return session.query(LoadRecord.id).filter_by(load_id=load_id).first() is not None

    def insert_load(
        self,
        fields: LoadFields,
        *,
        load_id: str,
        pin: str,
        verification_token: str,
        created_by: Optional[int],
        now: datetime,
    ) -> Load:
        """Insert a new DRAFT load."""
        with self.get_session() as session:
            record = LoadRecord(
                load_id=load_id,
                pin=pin,
                verification_token=verification_token,
                status=LoadStatus.DRAFT.value,
                created_by=created_by,
                created_at=now,
                updated_at=now,
            )
            self._apply_fields(record, fields)
            session.add(record)
            try:
                session.commit()
            except IntegrityError as e:
                session.rollback()
                raise ValidationError(f"Load ID {load_id} already exists") from e
            session.refresh(record)
            return self._to_load(record)

    def get_load(self, load_pk: int) -> Optional[Load]:
        """Get a load by internal id, with its last confirmation when USED."""
        with self.get_session() as session:
            record = session.get(LoadRecord, load_pk)
            if record is None:
                return None
            load = self._to_load(record)
            if load.status == LoadStatus.USED:
                load.confirmation = self._latest_confirmation(session, load_pk)
            return load

    def get_load_by_token(self, token: str) -> Optional[Load]:
        """Get a load by verification token, joined with its creator."""
        with self.get_session() as session:
            row = (
                session.query(LoadRecord, UserRecord)
                .outerjoin(UserRecord, LoadRecord.created_by == UserRecord.id)
                .filter(LoadRecord.verification_token == token)
                .first()
            )
            if row is None:
                return None
            record, creator = row
            return self._to_load(record, creator)

    def list_loads(self, status: Optional[LoadStatus] = None) -> list[Load]:
        """List loads newest first."""
        with self.get_session() as session:
            query = session.query(LoadRecord)
            if status:
                query = query.filter(LoadRecord.status == status.value)
            query = query.order_by(LoadRecord.created_at.desc(), LoadRecord.id.desc())
            return [self._to_load(record) for record in query.all()]

    def update_load_fields(self, load_pk: int, fields: LoadFields, now: datetime) -> Optional[Load]:
        """Overwrite editable attributes. Never touches status or security material."""
        with self.get_session() as session:
            record = session.get(LoadRecord, load_pk)
            if record is None:
                return None
            self._apply_fields(record, fields)
            record.updated_at = now
            session.commit()
            session.refresh(record)
            return self._to_load(record)

    def compare_and_set_status(
        self,
        load_pk: int,
        new_status: LoadStatus,
        now: datetime,
        expected: Optional[Iterable[LoadStatus]] = None,
        log_action: Optional[LoadAction] = None,
        log_details: Optional[dict] = None,
        log_user_id: Optional[int] = None,
    ) -> bool:
        """
        Set status only if the row is currently in one of ``expected``.

        The update and the optional log row commit together. Returns False
        when no row matched (missing load, or status moved underneath us).
        """
        with self.get_session() as session:
            stmt = update(LoadRecord).where(LoadRecord.id == load_pk)
            if expected is not None:
                stmt = stmt.where(LoadRecord.status.in_([s.value for s in expected]))
            stmt = stmt.values(status=new_status.value, updated_at=now).execution_options(
                synchronize_session=False
            )

            result = session.execute(stmt)
            if result.rowcount != 1:
                session.rollback()
                return False

            if log_action is not None:
                session.add(LoadLogRecord(
                    load_pk=load_pk,
                    action=log_action.value,
                    details=json.dumps(log_details or {}, default=str),
                    user_id=log_user_id,
                    created_at=now,
                ))

            session.commit()
            return True

    def delete_load(self, load_pk: int) -> bool:
        """Delete a load and its log rows in one transaction."""
        with self.get_session() as session:
            session.execute(
                delete(LoadLogRecord)
                .where(LoadLogRecord.load_pk == load_pk)
                .execution_options(synchronize_session=False)
            )
            result = session.execute(
                delete(LoadRecord)
                .where(LoadRecord.id == load_pk)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                session.rollback()
                return False
            session.commit()
            return True

    # =========================================================================
    # Audit Log
    # =========================================================================

    def list_logs(self, load_pk: Optional[int] = None) -> list[LoadLog]:
        """Raw log rows, oldest first, optionally for one load."""
        with self.get_session() as session:
            query = session.query(LoadLogRecord)
            if load_pk is not None:
                query = query.filter_by(load_pk=load_pk)
            query = query.order_by(LoadLogRecord.created_at.asc(), LoadLogRecord.id.asc())
            return [self._to_log(record) for record in query.all()]

    def get_release_logs(self) -> list[ReleaseLogEntry]:
        """Release confirmations joined with their load, newest first."""
        with self.get_session() as session:
            rows = (
                session.query(LoadLogRecord, LoadRecord)
                .join(LoadRecord, LoadLogRecord.load_pk == LoadRecord.id)
                .filter(LoadLogRecord.action == LoadAction.RELEASE_CONFIRMED.value)
                .order_by(LoadLogRecord.created_at.desc(), LoadLogRecord.id.desc())
                .all()
            )

            entries = []
            for log, load in rows:
                details = json.loads(log.details) if log.details else {}
                entries.append(ReleaseLogEntry(
                    id=log.id,
                    load_id=load.load_id,
                    load_raw_id=load.id,
                    pickup_location=load.pickup_location,
                    confirmed_by=details.get("confirmedBy"),
                    timestamp=as_utc(log.created_at),
                ))
            return entries

    # =========================================================================
    # Statistics
    # =========================================================================

    def get_stats(self) -> dict:
        """Load counts per status."""
        with self.get_session() as session:
            stats = {"total": session.query(LoadRecord).count()}
            for status in LoadStatus:
                stats[status.value.lower()] = (
                    session.query(LoadRecord).filter_by(status=status.value).count()
                )
            stats["releases"] = (
                session.query(LoadLogRecord)
                .filter_by(action=LoadAction.RELEASE_CONFIRMED.value)
                .count()
            )
            return stats
