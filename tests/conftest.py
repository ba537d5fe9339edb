"""
Shared fixtures.

Every test gets a fresh in-memory database, a controllable clock, and
recording stand-ins for the mailer and the document generator, wired with
notifications running inline.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone

import pytest

from dth_release.config import Settings
from dth_release.context import build_context
from dth_release.models import CurrentUser

FIXED_NOW = datetime(2026, 3, 4, 12, 0, tzinfo=timezone.utc)


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, now: datetime = FIXED_NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@dataclass
class SentMail:
    to: str
    subject: str
    html: str
    attachments: list = field(default_factory=list)


class RecordingMailer:
    """Keeps every message instead of sending it."""

    def __init__(self, fail: bool = False):
        self.sent: list[SentMail] = []
        self.fail = fail

    def send(self, to, subject, html, attachments=()):
        if self.fail:
            raise ConnectionError("SMTP server unreachable")
        self.sent.append(SentMail(to, subject, html, list(attachments)))
        return {"messageId": f"test-{len(self.sent)}"}

    def subjects(self) -> list[str]:
        return [mail.subject for mail in self.sent]


class StubDocuments:
    """Cheap PDF stand-in; optionally fails like a broken renderer."""

    def __init__(self, fail: bool = False):
        self.generated: list[str] = []
        self.fail = fail

    def generate(self, load, timezone="UTC"):
        self.generated.append(load.load_id)
        if self.fail:
            raise RuntimeError("renderer crashed")
        return b"%PDF-1.4 stub"


def build_settings(**overrides) -> Settings:
    values = {
        "DATABASE_URL": "sqlite://",
        "DISPATCH_EMAIL": "dispatch@example.com",
        "PUBLIC_BASE_URL": "https://portal.example.com",
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


@pytest.fixture
def settings():
    return build_settings()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def mailer():
    return RecordingMailer()


@pytest.fixture
def documents():
    return StubDocuments()


@pytest.fixture
def ctx(settings, mailer, documents, clock):
    context = build_context(
        settings,
        mailer=mailer,
        documents=documents,
        background=False,
        clock=clock,
    )
    yield context
    context.close()


@pytest.fixture
def dispatcher():
    return CurrentUser(id=7, email="ops@example.com", full_name="Dana Ops", role=1)


@pytest.fixture
def make_payload(clock):
    """Build a camelCase create payload whose window contains the current time."""

    def _make(**overrides) -> dict:
        payload = {
            "pickupLocation": "Port Newark, Lot 4",
            "pickupWindowStart": (clock.now - timedelta(hours=1)).isoformat(),
            "pickupWindowEnd": (clock.now + timedelta(hours=4)).isoformat(),
            "pickupInfo": "Gate B, ask for yard office",
            "pickupContact": "Yard office 555-0100",
            "vehicleYear": 2024,
            "vehicleMake": "Toyota",
            "vehicleModel": "Camry",
            "vinLast6": "A1B2C3",
            "carrierName": "Blue Line Transport",
            "driverName": "Sam Driver",
            "truckPlate": "TRK-001",
            "trailerPlate": "TRL-001",
        }
        payload.update(overrides)
        return payload

    return _make


@pytest.fixture
def valid_load(ctx, dispatcher, make_payload):
    """A VALID load created by ``dispatcher``."""
    load = ctx.loads.create_load(make_payload(), acting_user=dispatcher)
    return ctx.loads.validate(load.id)
