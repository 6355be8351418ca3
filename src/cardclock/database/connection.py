import sqlite3
import os
import threading
import atexit
from contextlib import contextmanager
from typing import Optional, List, Set


class DatabaseManager:
    """SQLite database manager for employees, attendance logs and settings"""

    def __init__(self, db_path: str = "cardclock.db"):
        env_db_path = os.environ.get("CARDCLOCK_DB_PATH")
        resolved_path = env_db_path if env_db_path and db_path == "cardclock.db" else db_path

        if not os.path.isabs(resolved_path):
            base_dir = os.path.dirname(os.path.abspath(__file__))
            resolved_path = os.path.join(base_dir, resolved_path)

        db_directory = os.path.dirname(resolved_path)
        if db_directory:
            try:
                os.makedirs(db_directory, exist_ok=True)
            except OSError as exc:
                raise RuntimeError(
                    f"Unable to create database directory '{db_directory}': {exc}"
                ) from exc

        self.db_path = resolved_path
        self._local = threading.local()
        self._connections: Set[sqlite3.Connection] = set()
        self._lock = threading.Lock()

        atexit.register(self.close_all_connections)

        self.init_database()

    def get_connection(self) -> sqlite3.Connection:
        """Get thread-local database connection"""
        if not hasattr(self._local, "connection") or self._local.connection is None:
            conn = sqlite3.connect(self.db_path, check_same_thread=False, timeout=30.0)
            conn.execute("PRAGMA journal_mode = WAL")
            conn.execute("PRAGMA synchronous = NORMAL")
            conn.execute("PRAGMA temp_store = MEMORY")
            conn.row_factory = sqlite3.Row

            self._local.connection = conn

            with self._lock:
                self._connections.add(conn)

        return self._local.connection

    @contextmanager
    def get_cursor(self):
        """Context manager for database operations"""
        conn = self.get_connection()
        cursor = conn.cursor()
        try:
            yield cursor
        except Exception:
            conn.rollback()
            raise
        else:
            conn.commit()
        finally:
            cursor.close()

    def init_database(self):
        """Initialize database tables"""
        with self.get_cursor() as cursor:
            # Employees are keyed by the identifier encoded on the card
            cursor.execute("""
                CREATE TABLE IF NOT EXISTS employees (
                    card_id TEXT PRIMARY KEY,
                    name TEXT NOT NULL,
                    department TEXT,
                    status TEXT NOT NULL DEFAULT 'Active',
                    created_at DATETIME DEFAULT CURRENT_TIMESTAMP
                )
            """)

            # One row per IN/OUT cycle; time_out stays NULL while the entry is open
            cursor.execute("""
                CREATE TABLE IF NOT EXISTS attendance_logs (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    card_id TEXT NOT NULL,
                    employee_name TEXT NOT NULL,
                    date TEXT NOT NULL, -- YYYY-MM-DD, local time
                    time_in TEXT NOT NULL, -- HH:MM:SS
                    time_out TEXT NULL,
                    status TEXT NOT NULL, -- IN or OUT
                    created_at DATETIME DEFAULT CURRENT_TIMESTAMP
                )
            """)

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS app_settings (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL,
                    description TEXT,
                    updated_at DATETIME DEFAULT CURRENT_TIMESTAMP
                )
            """)

            cursor.execute(
                "CREATE INDEX IF NOT EXISTS idx_attendance_card_date ON attendance_logs(card_id, date)"
            )
            cursor.execute(
                "CREATE INDEX IF NOT EXISTS idx_attendance_date ON attendance_logs(date)"
            )
            cursor.execute(
                "CREATE INDEX IF NOT EXISTS idx_employees_name ON employees(name)"
            )

    def execute_query(self, query: str, params: tuple = ()) -> sqlite3.Cursor:
        """Execute a single query"""
        with self.get_cursor() as cursor:
            cursor.execute(query, params)
            return cursor

    def fetch_one(self, query: str, params: tuple = ()) -> Optional[sqlite3.Row]:
        """Fetch single row"""
        with self.get_cursor() as cursor:
            cursor.execute(query, params)
            return cursor.fetchone()

    def fetch_all(self, query: str, params: tuple = ()) -> List[sqlite3.Row]:
        """Fetch all rows"""
        with self.get_cursor() as cursor:
            cursor.execute(query, params)
            return cursor.fetchall()

    def close_connection(self):
        """Close thread-local connection"""
        if hasattr(self._local, "connection") and self._local.connection is not None:
            try:
                conn = self._local.connection
                conn.close()

                with self._lock:
                    self._connections.discard(conn)
            except sqlite3.Error as e:
                print(f"Error closing thread-local connection: {e}")
            finally:
                self._local.connection = None

    def close_all_connections(self):
        """Close all tracked connections - called on shutdown"""
        with self._lock:
            connections_to_close = list(self._connections)
            self._connections.clear()

        for conn in connections_to_close:
            try:
                conn.close()
            except sqlite3.Error as e:
                print(f"Error closing connection: {e}")

        # Connections owned by other threads are closed now; drop ours too
        self._local.connection = None


# Global database manager instance
db_manager = DatabaseManager()
