"""
API Server Tests

Routes, status codes and the {msg, payload} envelope, driven through
FastAPI's TestClient against an in-memory context.
"""

import pytest
from fastapi.testclient import TestClient

from dth_release.server import create_app

AUTH = {
    "X-User-Id": "7",
    "X-User-Email": "ops@example.com",
    "X-User-Name": "Dana Ops",
    "X-User-Timezone": "America/New_York",
}


@pytest.fixture
def client(ctx):
    return TestClient(create_app(ctx))


def create(client, payload) -> dict:
    response = client.post("/api/loads", json=payload, headers=AUTH)
    assert response.status_code == 201, response.text
    return response.json()["payload"]


class TestSystem:
    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"
        assert response.json()["database_connected"] is True

    def test_loads_require_identity(self, client):
        response = client.get("/api/loads")

        assert response.status_code == 401
        assert response.json() == {"msg": "Access denied"}

    def test_malformed_path_uses_message_envelope(self, client):
        response = client.get("/api/loads/abc", headers=AUTH)

        assert response.status_code == 400
        assert set(response.json()) == {"msg"}
        assert response.json()["msg"].startswith("load_pk: ")

    def test_malformed_identity_header(self, client):
        response = client.get("/api/loads", headers={**AUTH, "X-User-Id": "not-a-number"})

        assert response.status_code == 400
        assert response.json()["msg"].startswith("x-user-id: ")


class TestLoadEndpoints:
    def test_create_returns_draft(self, client, make_payload):
        response = client.post("/api/loads", json=make_payload(), headers=AUTH)

        assert response.status_code == 201
        body = response.json()
        assert body["msg"] == "Load created successfully"
        assert body["payload"]["status"] == "DRAFT"
        assert body["payload"]["loadId"].startswith("DTH-")
        assert body["payload"]["vinLast6"] == "A1B2C3"

    def test_create_validation_error(self, client, make_payload):
        payload = make_payload()
        del payload["pickupWindowStart"]

        response = client.post("/api/loads", json=payload, headers=AUTH)

        assert response.status_code == 400
        assert "pickup_window_start" in response.json()["msg"]

    def test_list_and_get(self, client, make_payload):
        load = create(client, make_payload())

        listing = client.get("/api/loads", headers=AUTH).json()["payload"]
        assert [item["id"] for item in listing] == [load["id"]]

        detail = client.get(f"/api/loads/{load['id']}", headers=AUTH).json()["payload"]
        assert detail["pin"] == load["pin"]

    def test_unknown_load(self, client):
        response = client.get("/api/loads/999", headers=AUTH)

        assert response.status_code == 404
        assert response.json() == {"msg": "Load not found"}

    def test_update(self, client, make_payload):
        load = create(client, make_payload())

        response = client.put(
            f"/api/loads/{load['id']}", json=make_payload(driverName="Alex Relief"), headers=AUTH
        )

        assert response.status_code == 200
        assert response.json()["payload"]["driverName"] == "Alex Relief"
        assert response.json()["payload"]["pin"] == load["pin"]

    def test_status_requires_value(self, client, make_payload):
        load = create(client, make_payload())

        response = client.patch(f"/api/loads/{load['id']}/status", json={}, headers=AUTH)

        assert response.status_code == 400
        assert response.json() == {"msg": "Status is required"}

    def test_status_override(self, client, make_payload):
        load = create(client, make_payload())

        response = client.patch(f"/api/loads/{load['id']}/status", json={"status": "VOID"}, headers=AUTH)

        assert response.status_code == 200
        assert response.json()["msg"] == "Status updated to VOID"

    def test_void(self, client, make_payload):
        load = create(client, make_payload())

        response = client.patch(f"/api/loads/{load['id']}/void", headers=AUTH)
        assert response.json()["payload"]["status"] == "VOID"

    def test_pdf_download(self, client, make_payload):
        load = create(client, make_payload())

        response = client.get(f"/api/loads/{load['id']}/pdf", headers=AUTH)

        assert response.status_code == 200
        assert response.headers["content-type"] == "application/pdf"
        assert response.headers["content-disposition"] == (
            f"attachment; filename=DTH_Release_{load['loadId']}.pdf"
        )
        assert response.content.startswith(b"%PDF")

    def test_delete(self, client, make_payload):
        load = create(client, make_payload())

        response = client.delete(f"/api/loads/{load['id']}", headers=AUTH)
        assert response.json()["msg"] == "Load deleted successfully"
        assert client.get(f"/api/loads/{load['id']}", headers=AUTH).status_code == 404


class TestReleaseFlow:
    """End to end: create, validate, scan, confirm, replay"""

    def test_full_release(self, client, make_payload):
        load = create(client, make_payload())
        token = load["verificationToken"]

        validated = client.patch(f"/api/loads/{load['id']}/validate", headers=AUTH)
        assert validated.json()["payload"]["status"] == "VALID"

        # Public page needs no identity and hides internal fields
        view = client.get(f"/api/verify/{token}").json()["payload"]
        assert view["loadId"] == load["loadId"]
        assert "id" not in view and "createdBy" not in view

        wrong = client.post(f"/api/verify/{token}/confirm", json={"pin": "bad"})
        assert wrong.status_code == 400
        assert wrong.json() == {"msg": "INVALID PIN"}

        confirmed = client.post(
            f"/api/verify/{token}/confirm",
            json={"pin": load["pin"], "confirmedBy": "Jordan at Gate B"},
        )
        assert confirmed.status_code == 200
        assert confirmed.json()["msg"] == "VEHICLE RELEASE CONFIRMED"
        assert confirmed.json()["payload"] == {
            "status": "USED",
            "confirmationMessage": "This vehicle has been officially released by DTH Logistics.",
        }

        replay = client.post(f"/api/verify/{token}/confirm", json={"pin": load["pin"]})
        assert replay.status_code == 400
        assert replay.json() == {"msg": "ALREADY USED"}

        logs = client.get("/api/loads/logs", headers=AUTH).json()["payload"]
        assert len(logs) == 1
        assert logs[0]["confirmedBy"] == "Jordan at Gate B"
        assert logs[0]["loadRawId"] == load["id"]

        detail = client.get(f"/api/loads/{load['id']}", headers=AUTH).json()["payload"]
        assert detail["confirmation"]["confirmedBy"] == "Jordan at Gate B"

    def test_numeric_pin_accepted(self, client, make_payload):
        load = create(client, make_payload())
        client.patch(f"/api/loads/{load['id']}/validate", headers=AUTH)

        response = client.post(
            f"/api/verify/{load['verificationToken']}/confirm", json={"pin": int(load["pin"])}
        )
        assert response.status_code == 200, response.text

    def test_invalid_verification_link(self, client):
        response = client.get("/api/verify/not-a-token")

        assert response.status_code == 404
        assert response.json() == {"msg": "Invalid verification link"}
