import os
import tempfile
import threading
import time
from collections import deque
from types import SimpleNamespace

# Must happen before cardclock is imported anywhere
_TEST_DIR = tempfile.mkdtemp(prefix="cardclock-tests-")
os.environ["CARDCLOCK_DB_PATH"] = os.path.join(_TEST_DIR, "cardclock.db")
os.environ["CARDCLOCK_DISABLE_READER"] = "true"
os.environ.pop("SENTRY_DSN", None)

import pytest
import serial

from cardclock.config.config_manager import ReaderConfigManager
from cardclock.database.connection import DatabaseManager
from cardclock.models.employee import Employee, EmployeeStatus
from cardclock.repositories import AttendanceRepository, EmployeeRepository, SettingRepository
from cardclock.services.attendance_service import AttendanceToggleEngine
from cardclock.services.scan_reader import PortUnavailableError


@pytest.fixture
def db(tmp_path):
    manager = DatabaseManager(str(tmp_path / "test.db"))
    yield manager
    manager.close_all_connections()


@pytest.fixture
def employee_repo(db):
    return EmployeeRepository(db)


@pytest.fixture
def attendance_repo(db):
    return AttendanceRepository(db)


@pytest.fixture
def config(db):
    manager = ReaderConfigManager(SettingRepository(db))
    manager.initialize_defaults()
    return manager


@pytest.fixture
def engine(employee_repo, attendance_repo):
    return AttendanceToggleEngine(employee_repo, attendance_repo)


@pytest.fixture
def register(employee_repo):
    def _register(card_id, name="Alice", department="Engineering", status=EmployeeStatus.ACTIVE):
        return employee_repo.create(
            Employee(card_id=card_id, name=name, department=department, status=status)
        )
    return _register


def make_port(device, description="", hwid=""):
    """Stand-in for a pyserial ListPortInfo"""
    return SimpleNamespace(device=device, description=description, hwid=hwid)


class FakeSerial:
    """Minimal pyserial.Serial replacement fed from a list of byte chunks"""

    def __init__(self, port=None, baudrate=9600, timeout=None, chunks=(), errors=0):
        self.port = port
        self.baudrate = baudrate
        self.timeout = timeout
        self.is_open = True
        self._chunks = deque(chunks)
        self._errors = errors
        self._lock = threading.Lock()

    @property
    def in_waiting(self):
        with self._lock:
            return len(self._chunks[0]) if self._chunks else 0

    def push(self, data: bytes):
        with self._lock:
            self._chunks.append(data)

    def read(self, size=1):
        if not self.is_open:
            raise serial.SerialException("port closed")
        with self._lock:
            if self._errors:
                self._errors -= 1
                raise serial.SerialException("device reports readiness to read but returned no data")
            if self._chunks:
                return self._chunks.popleft()
        time.sleep(0.01)
        return b""

    def close(self):
        self.is_open = False


class FakeFrontEnd:
    """Scan front-end double driven entirely by the test"""

    def __init__(self, ports=None):
        self.ports = list(ports or [])
        self.fail_ports = set()
        self.connected_port = None
        self.connect_calls = []
        self.disconnect_calls = 0
        self.on_connect = None
        self.keys = []

    def available_ports(self):
        return list(self.ports)

    def is_connected(self):
        return self.connected_port is not None

    def connect(self, port_name, baud_rate):
        self.connect_calls.append((port_name, baud_rate))
        if port_name in self.fail_ports:
            raise PortUnavailableError(port_name, baud_rate, "Access is denied")
        self.connected_port = port_name
        if self.on_connect:
            self.on_connect(port_name)

    def disconnect(self):
        self.disconnect_calls += 1
        self.connected_port = None

    def feed_keys(self, keys):
        self.keys.append(keys)
        return keys.count("\r")


class RecordingEvents:
    """Collects what would be pushed to the UI"""

    def __init__(self):
        self.scans = []
        self.connections = []
        self.notifications = []

    def publish_scan(self, outcome):
        self.scans.append(outcome)

    def publish_connection(self, state):
        self.connections.append(state)

    def publish_notification(self, message, level="info"):
        self.notifications.append((message, level))


class DeferredScheduler:
    """Holds settle callbacks until the test runs them"""

    def __init__(self):
        self.pending = []

    def __call__(self, delay, fn, *args):
        self.pending.append((delay, fn, args))

    @property
    def delays(self):
        return [delay for delay, _, _ in self.pending]

    def run_all(self):
        results = []
        while self.pending:
            _, fn, args = self.pending.pop(0)
            results.append(fn(*args))
        return results


class FakeSchedulerService:
    """SchedulerService stand-in: interval jobs are recorded, delayed calls run at once"""

    def __init__(self):
        self.is_running = False
        self.jobs = {}
        self.delayed = []

    def start(self):
        self.is_running = True

    def stop(self):
        self.is_running = False

    def add_interval_job(self, func, seconds, job_id, name=None):
        self.jobs[job_id] = (func, seconds)

    def remove_job(self, job_id):
        self.jobs.pop(job_id, None)

    def call_later(self, delay_seconds, func, *args):
        self.delayed.append(delay_seconds)
        return func(*args)


@pytest.fixture
def front_end():
    return FakeFrontEnd()


@pytest.fixture
def events():
    return RecordingEvents()


@pytest.fixture
def deferred():
    return DeferredScheduler()
