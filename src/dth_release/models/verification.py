"""Dealer-facing projections served by the public verification gateway."""

from datetime import datetime
from typing import Optional

from pydantic import Field

from .enums import LoadStatus
from .load import CamelModel, Load


class VehicleView(CamelModel):
    year: Optional[int] = None
    make: Optional[str] = None
    model: Optional[str] = None
    vin_last_6: Optional[str] = Field(default=None, alias="vinLast6")


class NamedParty(CamelModel):
    name: Optional[str] = None


class PlatesView(CamelModel):
    truck: Optional[str] = None
    trailer: Optional[str] = None


class WindowView(CamelModel):
    start: Optional[datetime] = None
    end: Optional[datetime] = None


class DealerView(CamelModel):
    """
    What the dealer sees after scanning the QR code.

    Carries the live PIN for on-screen display. Never carries the internal
    id, the creator's identity or the audit history.
    """

    load_id: str
    pickup_location: Optional[str] = None
    vehicle: VehicleView
    driver: NamedParty
    carrier: NamedParty
    plates: PlatesView
    status: LoadStatus
    pickup_window: WindowView
    pin: str
    pickup_info: Optional[str] = None
    pickup_contact: Optional[str] = None

    @classmethod
    def from_load(cls, load: Load) -> "DealerView":
        return cls(
            load_id=load.load_id,
            pickup_location=load.pickup_location,
            vehicle=VehicleView(
                year=load.vehicle_year,
                make=load.vehicle_make,
                model=load.vehicle_model,
                vin_last_6=load.vin_last_6,
            ),
            driver=NamedParty(name=load.driver_name),
            carrier=NamedParty(name=load.carrier_name),
            plates=PlatesView(truck=load.truck_plate, trailer=load.trailer_plate),
            status=load.status,
            pickup_window=WindowView(start=load.pickup_window_start, end=load.pickup_window_end),
            pin=load.pin,
            pickup_info=load.pickup_info,
            pickup_contact=load.pickup_contact,
        )


class ConfirmationResult(CamelModel):
    """Public response to a successful release confirmation."""

    status: LoadStatus
    confirmation_message: str
