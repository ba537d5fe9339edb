"""Load model for vehicle release records."""

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from ..clock import as_utc
from .enums import LoadAction, LoadStatus


class CamelModel(BaseModel):
    """Snake_case in Python, camelCase on the wire."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class LoadFields(CamelModel):
    """Editable descriptive attributes of a load."""

    # Pickup
    pickup_location: Optional[str] = None
    pickup_window_start: Optional[datetime] = None
    pickup_window_end: Optional[datetime] = None
    pickup_info: Optional[str] = None
    pickup_contact: Optional[str] = None

    # Vehicle
    vehicle_year: Optional[int] = None
    vehicle_make: Optional[str] = None
    vehicle_model: Optional[str] = None
    vin_last_6: Optional[str] = Field(default=None, alias="vinLast6", max_length=17)

    # Carrier & driver
    carrier_name: Optional[str] = None
    driver_name: Optional[str] = None
    driver_license_info: Optional[str] = None
    driver_photo: Optional[str] = None
    truck_plate: Optional[str] = None
    trailer_plate: Optional[str] = None

    # Schema defined by the form-field configuration
    custom_fields: dict[str, Any] = Field(default_factory=dict)

    @field_validator("pickup_window_start", "pickup_window_end")
    @classmethod
    def normalize_window(cls, v: Optional[datetime]) -> Optional[datetime]:
        return as_utc(v)

    @field_validator("custom_fields", mode="before")
    @classmethod
    def default_custom_fields(cls, v: Any) -> Any:
        return {} if v is None else v

    @property
    def vehicle_info(self) -> str:
        """Short vehicle description for mail subjects and bodies."""
        parts = [str(p) for p in (self.vehicle_year, self.vehicle_make, self.vehicle_model) if p]
        if parts:
            return " ".join(parts)
        if self.vin_last_6:
            return f"VIN {self.vin_last_6}"
        return "Vehicle"


class LoadCreate(LoadFields):
    """Create payload. ``load_id`` overrides the generated identifier."""

    load_id: Optional[str] = Field(default=None, max_length=50)


class LoadUpdate(LoadFields):
    """Full overwrite of the editable attributes."""


class ReleaseConfirmation(CamelModel):
    """Latest confirmation attached to a USED load."""

    confirmed_by: Optional[str] = None
    timestamp: datetime


class Load(LoadFields):
    """
    Complete load record.

    ``pin``, ``verification_token`` and ``load_id`` are fixed at creation.
    """

    id: int
    load_id: str
    pin: str
    verification_token: str
    status: LoadStatus = LoadStatus.DRAFT

    created_by: Optional[int] = None
    created_at: datetime
    updated_at: datetime

    # Joined from the creator on token lookups
    dispatcher_email: Optional[str] = None
    dispatcher_name: Optional[str] = None

    confirmation: Optional[ReleaseConfirmation] = None


class LoadLog(CamelModel):
    """Append-only audit record."""

    id: int
    load_pk: int
    action: LoadAction
    details: dict[str, Any] = Field(default_factory=dict)
    user_id: Optional[int] = None
    created_at: datetime


class ReleaseLogEntry(CamelModel):
    """Row of the release audit listing."""

    id: int
    load_id: str
    load_raw_id: int
    pickup_location: Optional[str] = None
    confirmed_by: Optional[str] = None
    timestamp: datetime


class CurrentUser(BaseModel):
    """Identity resolved by the auth provider. Never authenticated here."""

    id: int
    email: Optional[str] = None
    role: Optional[int] = None
    full_name: Optional[str] = None
    timezone: str = "UTC"
