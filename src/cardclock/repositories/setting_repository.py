from typing import Dict, Optional
from datetime import datetime
from cardclock.models.setting import AppSetting
from cardclock.database.connection import db_manager

DEFAULT_SETTINGS = {
    'auto_connect_on_startup': {
        'value': 'false',
        'description': 'Connect to the last used reader port when the service starts'
    },
    'auto_connect_on_device_plug': {
        'value': 'true',
        'description': 'Connect automatically when a reader is plugged in'
    },
    'play_sound_on_scan': {
        'value': 'true',
        'description': 'Ask the UI to play a sound after a successful scan'
    },
    'baud_rate': {
        'value': '9600',
        'description': 'Serial baud rate used when opening the reader port'
    },
    'preferred_device_class': {
        'value': 'reader',
        'description': 'Device classification policy: reader (known chips) or generic'
    },
    'input_mode': {
        'value': 'serial',
        'description': 'Reader input mode: serial or keyboard'
    },
}


class SettingRepository:
    """App settings database operations"""

    def __init__(self, db=None):
        self.db = db or db_manager

    def get(self, key: str) -> Optional[AppSetting]:
        row = self.db.fetch_one("SELECT * FROM app_settings WHERE key = ?", (key,))
        if row:
            return AppSetting(
                key=row['key'],
                value=row['value'],
                description=row['description'],
                updated_at=row['updated_at'],
            )
        return None

    def get_value(self, key: str) -> Optional[str]:
        """Get setting value only"""
        row = self.db.fetch_one("SELECT value FROM app_settings WHERE key = ?", (key,))
        return row['value'] if row else None

    def set(self, key: str, value: str, description: str = None) -> bool:
        """Set setting value, keeping the stored description when none is given"""
        if description is None:
            existing = self.get(key)
            description = existing.description if existing else None

        query = '''
            INSERT OR REPLACE INTO app_settings (key, value, description, updated_at)
            VALUES (?, ?, ?, ?)
        '''
        cursor = self.db.execute_query(query, (key, value, description, datetime.now()))
        return cursor.rowcount > 0

    def delete(self, key: str) -> bool:
        cursor = self.db.execute_query("DELETE FROM app_settings WHERE key = ?", (key,))
        return cursor.rowcount > 0

    def get_all(self) -> Dict[str, str]:
        """Get all settings as dictionary"""
        rows = self.db.fetch_all("SELECT key, value FROM app_settings")
        return {row['key']: row['value'] for row in rows}

    def initialize_defaults(self):
        """Initialize default settings if they don't exist"""
        for key, config in DEFAULT_SETTINGS.items():
            existing = self.get(key)
            if not existing:
                self.set(key, config['value'], config['description'])
