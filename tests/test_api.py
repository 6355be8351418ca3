import pytest

import cardclock.services.reader_service as reader_service_module
from cardclock import create_app
from cardclock.database.connection import db_manager
from cardclock.events import reader_event_stream
from cardclock.repositories import setting_repo
from cardclock.services.reader_service import ReaderService

from conftest import FakeFrontEnd, FakeSchedulerService, RecordingEvents


@pytest.fixture
def app():
    for table in ("employees", "attendance_logs", "app_settings"):
        db_manager.execute_query(f"DELETE FROM {table}")
    setting_repo.initialize_defaults()

    app = create_app({"TESTING": True})
    yield app
    db_manager.close_connection()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def reader(monkeypatch):
    front_end = FakeFrontEnd(ports=["COM3"])
    service = ReaderService(
        event_stream=RecordingEvents(),
        scheduler=FakeSchedulerService(),
        front_end=front_end,
        port_lister=lambda: [],
    )
    monkeypatch.setattr(reader_service_module, "_reader_service", service)
    service.start()
    yield service
    service.stop()


def register(client, card_id="A100", name="Alice", department="Engineering"):
    return client.post(
        "/employees", json={"card_id": card_id, "name": name, "department": department}
    )


def test_register_employee(client):
    response = register(client)

    assert response.status_code == 201
    body = response.get_json()
    assert body["success"] is True
    assert body["data"]["card_id"] == "A100"
    assert body["data"]["status"] == "Active"


def test_register_duplicate_card(client):
    register(client)

    response = register(client, name="Someone Else")

    assert response.status_code == 409
    assert response.get_json()["error"] == "Card already registered."


@pytest.mark.parametrize(
    "payload, message",
    [
        ({"card_id": "", "name": "Alice"}, "Scan a card first to fill Card ID."),
        ({"card_id": "-", "name": "Alice"}, "Scan a card first to fill Card ID."),
        ({"card_id": "A100", "name": "  "}, "Enter a name."),
    ],
)
def test_register_requires_card_and_name(client, payload, message):
    response = client.post("/employees", json=payload)

    assert response.status_code == 400
    assert response.get_json()["error"] == message


def test_register_rejects_malformed_body(client):
    response = client.post("/employees", json={"name": "Alice"})

    assert response.status_code == 400
    assert response.get_json()["success"] is False


def test_search_and_get_employee(client):
    register(client, "A100", "Alice")
    register(client, "B200", "Bob")

    listed = client.get("/employees?search=bo").get_json()
    assert [e["card_id"] for e in listed["data"]] == ["B200"]

    assert client.get("/employees/A100").get_json()["data"]["name"] == "Alice"
    assert client.get("/employees/NOPE").status_code == 404


def test_update_employee_status(client):
    register(client)

    response = client.put("/employees/A100/status", json={"status": "inactive"})

    assert response.status_code == 200
    assert response.get_json()["data"]["status"] == "Inactive"
    assert client.put("/employees/NOPE/status", json={"status": "Active"}).status_code == 404
    assert client.put("/employees/A100/status", json={"status": "gone"}).status_code == 400


def test_update_employee_details(client):
    register(client)

    response = client.put("/employees/A100", json={"department": "Support"})

    assert response.get_json()["data"]["department"] == "Support"
    assert client.put("/employees/A100", json={}).status_code == 400


def test_manual_scan_clocks_in_and_out(client, reader):
    register(client)

    first = client.post("/attendance/scan", json={"card_id": "A100"}).get_json()
    second = client.post("/attendance/scan", json={"card_id": "A100"}).get_json()

    assert first["data"]["kind"] == "clocked_in"
    assert second["data"]["kind"] == "clocked_out"
    assert second["data"]["record"]["id"] == first["data"]["record"]["id"]

    today = client.get("/attendance/today").get_json()["data"]
    assert today["stats"]["total_employees"] == 1
    assert today["logs"][0]["department"] == "Engineering"


def test_manual_scan_without_card_uses_test_id(client, reader):
    body = client.post("/attendance/scan", json={}).get_json()

    assert body["data"]["card_id"].startswith("TEST")
    assert body["data"]["kind"] == "unknown_card"


def test_manual_scan_when_reader_not_running(client, monkeypatch):
    monkeypatch.setattr(reader_service_module, "_reader_service", ReaderService(front_end=FakeFrontEnd()))

    response = client.post("/attendance/scan", json={"card_id": "A100"})

    assert response.status_code == 503


def test_attendance_logs_validates_dates(client):
    assert client.get("/attendance/logs?start_date=06/05/2024").status_code == 400
    body = client.get("/attendance/logs?start_date=2024-05-01&end_date=2024-05-31").get_json()
    assert body["success"] is True
    assert body["data"] == []


def test_attendance_summary(client, reader):
    register(client)
    client.post("/attendance/scan", json={"card_id": "A100"})

    body = client.get("/attendance/summary").get_json()

    assert body["data"] == {"total_ins": 1, "total_outs": 0}


def test_reader_connect_and_disconnect(client, reader):
    response = client.post("/reader/connect", json={"port": "COM3", "baud_rate": 9600})

    assert response.status_code == 200
    assert response.get_json()["data"] == {"status": "connected", "port_name": "COM3"}

    busy = client.post("/reader/connect", json={"port": "COM4"})
    assert busy.status_code == 409
    assert "detail" in busy.get_json()

    status = client.get("/reader/status").get_json()["data"]
    assert status["connection"]["port_name"] == "COM3"

    response = client.post("/reader/disconnect")
    assert response.get_json()["data"]["status"] == "disconnected"


def test_reader_connect_failure_returns_detail(client, reader):
    reader.front_end.fail_ports.add("COM9")

    response = client.post("/reader/connect", json={"port": "COM9"})

    assert response.status_code == 502
    body = response.get_json()
    assert "COM9" in body["detail"]
    assert "9600" in body["detail"]


def test_reader_connect_requires_port(client, reader):
    assert client.post("/reader/connect", json={}).status_code == 400


def test_reader_ports(client, reader):
    body = client.get("/reader/ports").get_json()

    assert body["data"]["ports"] == ["COM3"]


def test_reader_keystrokes_and_recent_scans(client, reader):
    client.put("/settings/reader", json={"input_mode": "keyboard"})

    response = client.post("/reader/keystrokes", json={"keys": "A100\r"})

    assert response.status_code == 202
    assert response.get_json()["data"]["scans"] == 1
    assert client.get("/reader/recent-scans").get_json()["data"] == []


def test_reader_status_when_not_running(client, monkeypatch):
    monkeypatch.setattr(reader_service_module, "_reader_service", ReaderService(front_end=FakeFrontEnd()))

    assert client.get("/reader/status").status_code == 503


def test_reader_settings_roundtrip(client):
    defaults = client.get("/settings/reader").get_json()["data"]
    assert defaults["auto_connect_on_startup"] is False
    assert defaults["auto_connect_on_device_plug"] is True
    assert defaults["play_sound_on_scan"] is True
    assert defaults["baud_rate"] == 9600

    response = client.put("/settings/reader", json={"baud_rate": 115200, "play_sound_on_scan": False})

    assert response.status_code == 200
    data = response.get_json()["data"]
    assert data["baud_rate"] == 115200
    assert data["play_sound_on_scan"] is False


@pytest.mark.parametrize(
    "payload",
    [
        {"baud_rate": "fast"},
        {"preferred_device_class": "printer"},
        {"unknown": True},
        {},
    ],
)
def test_reader_settings_validation(client, payload):
    assert client.put("/settings/reader", json=payload).status_code == 400


def test_live_events_stream(client):
    response = client.get("/live-events")
    chunks = response.iter_encoded()

    assert next(chunks).startswith(b"event: connected")

    reader_event_stream.publish_notification("Reader on COM3 disconnected", "warning")
    event = next(chunks)

    assert event.startswith(b"event: notification")
    assert b"Reader on COM3 disconnected" in event
    response.close()
