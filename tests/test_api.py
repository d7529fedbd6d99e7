"""
Tests for the OTP HTTP Router
=============================
"""

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from conftest import RecordingNotifier
from otp_core.api import create_otp_router
from otp_core.config import OTPConfig
from otp_core.service import OTPService
from otp_core.store import InMemoryRecordStore


def create_client(clock, notifier=None):
    config = OTPConfig(hash_time_cost=1, hash_memory_cost=8, hash_parallelism=1)
    service = OTPService(InMemoryRecordStore(), notifier or RecordingNotifier(), config, clock)
    app = FastAPI()
    app.include_router(create_otp_router(service))
    return TestClient(app), service


def issue(client, identity="a@x.com", **extra):
    body = {"identity": identity, "org_id": "org-1", **extra}
    return client.post("/otp/requests", json=body)


def test_issue_and_verify(clock):
    client, service = create_client(clock)

    response = issue(client, display_name="Alice", kind="registration", request_id="req-1")
    assert response.status_code == 201
    data = response.json()
    assert data["record_id"] == "req-1"
    assert data["status"] == "sent"
    assert "code" not in data

    response = client.post(
        "/otp/verify",
        json={"identity": "a@x.com", "code": service.notifier.last_code},
    )
    assert response.status_code == 200
    assert response.json() == {
        "success": True,
        "message": "OTP verified successfully",
        "record_id": "req-1",
        "proof_token": None,
    }


def test_replay_is_conflict(clock):
    client, service = create_client(clock)
    issue(client)
    body = {"identity": "a@x.com", "code": service.notifier.last_code}

    assert client.post("/otp/verify", json=body).status_code == 200

    response = client.post("/otp/verify", json=body)
    assert response.status_code == 409
    assert response.json()["detail"]["error"] == "already_used"


def test_expired(clock):
    client, service = create_client(clock)
    issue(client)
    clock.advance(301)

    response = client.post(
        "/otp/verify",
        json={"identity": "a@x.com", "code": service.notifier.last_code},
    )

    assert response.status_code == 410
    assert response.json()["detail"] == {"error": "expired", "message": "OTP has expired"}


def test_invalid_code(clock):
    client, service = create_client(clock)
    issue(client)
    wrong = "100000" if service.notifier.last_code != "100000" else "100001"

    response = client.post("/otp/verify", json={"identity": "a@x.com", "code": wrong})

    assert response.status_code == 401
    assert response.json()["detail"]["error"] == "invalid_code"


def test_unknown_identity(clock):
    client, _ = create_client(clock)

    response = client.post("/otp/verify", json={"identity": "nobody@x.com", "code": "123456"})

    assert response.status_code == 404
    assert response.json()["detail"]["error"] == "not_found"


@pytest.mark.parametrize("body", [
    {"identity": "a@x.com"},
    {"code": "123456"},
    {"identity": "", "code": "123456"},
])
def test_missing_fields(clock, body):
    client, _ = create_client(clock)

    assert client.post("/otp/verify", json=body).status_code == 422


def test_blank_identity_rejected(clock):
    client, _ = create_client(clock)

    response = client.post("/otp/verify", json={"identity": "  ", "code": "123456"})

    assert response.status_code == 400
    assert response.json()["detail"]["error"] == "invalid_argument"


def test_delivery_failure(clock):
    client, service = create_client(clock, RecordingNotifier(fail_with="mailbox full"))

    response = issue(client, request_id="req-2")

    assert response.status_code == 502
    assert response.json()["detail"] == {
        "error": "delivery_failed",
        "message": "OTP could not be delivered",
    }


def test_duplicate_request(clock):
    client, _ = create_client(clock)

    assert issue(client, request_id="req-3").status_code == 201
    assert issue(client, request_id="req-3").status_code == 409


def test_sweep(clock):
    client, _ = create_client(clock)
    issue(client)
    issue(client, identity="b@x.com")
    clock.advance(3600)

    response = client.post("/otp/sweep")

    assert response.status_code == 200
    assert response.json() == {"deleted": 2}
    assert client.post("/otp/sweep").json() == {"deleted": 0}
