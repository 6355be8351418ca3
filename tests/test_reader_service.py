from datetime import datetime

import pytest

from cardclock.models.device import DeviceDescriptor
from cardclock.models.scan import ScanResult
from cardclock.services.reader_service import ReaderNotRunningError, ReaderService
from cardclock.shared.logger import app_logger

from conftest import FakeSchedulerService, make_port


@pytest.fixture
def scheduler():
    return FakeSchedulerService()


@pytest.fixture
def service(config, events, scheduler, front_end, engine):
    service = ReaderService(
        config=config,
        event_stream=events,
        scheduler=scheduler,
        front_end=front_end,
        engine=engine,
        port_lister=lambda: [],
    )
    yield service
    service.stop()


def test_operations_require_start(service):
    with pytest.raises(ReaderNotRunningError):
        service.status()


def test_start_runs_startup_auto_connect(service, config, front_end, scheduler):
    config.update_settings({"auto_connect_on_startup": True})
    front_end.ports = ["COM4"]

    service.start()

    assert front_end.connected_port == "COM4"
    assert service.status()["connection"] == {"status": "connected", "port_name": "COM4"}
    assert service.watcher.is_running
    assert scheduler.is_running


def test_stop_disconnects_and_is_idempotent(service, config, front_end, scheduler):
    config.update_settings({"auto_connect_on_startup": True})
    front_end.ports = ["COM4"]
    service.start()

    service.stop()
    service.stop()

    assert front_end.connected_port is None
    assert not service.is_running
    assert not scheduler.is_running
    assert not service.dispatcher.is_running


def test_restart_after_stop_allows_connect(service, config, front_end, events):
    config.update_settings({"auto_connect_on_startup": True})
    front_end.ports = ["COM4"]
    service.start()

    service.stop()

    assert service.coordinator.state.is_disconnected
    assert events.connections[-1]["status"] == "disconnected"

    config.update_settings({"auto_connect_on_startup": False})
    service.start()

    assert service.connect("COM4", 9600).is_connected
    assert service.status()["connection"] == {"status": "connected", "port_name": "COM4"}


def test_manual_scan_without_card_generates_test_id(service):
    service.start()

    outcome = service.scan(None, datetime(2024, 5, 6, 14, 3, 9))

    assert outcome.card_id == "TEST140309"
    assert outcome.kind == ScanResult.UNKNOWN_CARD


def test_manual_scan_updates_recent_scans(service, register):
    register("A100", "Alice")
    service.start()

    service.scan("A100", datetime(2024, 5, 6, 9, 0, 0))

    assert service.recent_scans()[0]["name"] == "Alice"
    assert service.status()["scans_processed"] == 1


def test_keystrokes_only_in_keyboard_mode(service, config, front_end):
    service.start()

    assert service.feed_keys("A100\r") == 0
    config.update_settings({"input_mode": "keyboard"})
    assert service.feed_keys("A100\r") == 1
    assert front_end.keys == ["A100\r"]


def test_connect_and_disconnect_through_service(service, events):
    service.start()

    assert service.connect("COM7", 9600).is_connected
    assert service.disconnect().is_disconnected
    assert [c["status"] for c in events.connections] == ["connecting", "connected", "disconnected"]


def test_attach_flows_through_dispatcher(config, events, scheduler, front_end, engine):
    ports = []
    service = ReaderService(
        config=config,
        event_stream=events,
        scheduler=scheduler,
        front_end=front_end,
        engine=engine,
        port_lister=lambda: list(ports),
    )
    service.start()
    try:
        ports.append(make_port("COM6", "Silicon Labs CP210x USB to UART Bridge (COM6)", "USB VID:PID=10C4:EA60"))
        front_end.ports = ["COM6"]
        service.watcher.poll()

        # Calls queue behind the attach and its settle step
        service.dispatcher.call(lambda: None)
        state = service.dispatcher.call(lambda: service.coordinator.state)

        assert state.port_name == "COM6"
        assert scheduler.delayed == [0.5]
    finally:
        service.stop()


def test_settle_step_errors_are_logged(service, config, front_end, monkeypatch):
    errors = []
    service.start()
    monkeypatch.setattr(app_logger, "error", lambda message, *args, **kwargs: errors.append(message))

    def broken_settings():
        raise RuntimeError("settings unavailable")

    monkeypatch.setattr(config, "get_settings", broken_settings)
    front_end.ports = ["COM6"]
    service.dispatcher.post_attach(DeviceDescriptor("COM6"))

    # The first call runs before the posted settle step, the second after it
    service.dispatcher.call(lambda: None)
    service.dispatcher.call(lambda: None)

    assert any("settings unavailable" in message for message in errors)
    assert service.coordinator.state.is_disconnected
    assert service.dispatcher.is_running


def test_apply_settings_switches_classifier(service, config):
    service.start()
    config.update_settings({"preferred_device_class": "generic"})

    service.apply_settings()

    assert service.watcher.classifier.name == "generic"
