from cardclock.schemas.register_employee import schema as register_employee_schema
from cardclock.schemas.update_employee import schema as update_employee_schema
from cardclock.schemas.update_employee_status import schema as update_employee_status_schema
from cardclock.schemas.reader_connect import schema as reader_connect_schema
from cardclock.schemas.reader_keystrokes import schema as reader_keystrokes_schema
from cardclock.schemas.reader_settings import schema as reader_settings_schema
from cardclock.schemas.manual_scan import schema as manual_scan_schema

def validate_data(data, schema):
    """Validate a request body; returns (is_valid, error_message)"""
    from jsonschema import validate as jsonschema_validate
    from jsonschema.exceptions import ValidationError
    try:
        jsonschema_validate(instance=data, schema=schema)
        return True, None
    except ValidationError as e:
        return False, e.message

__all__ = [
    'register_employee_schema',
    'update_employee_schema',
    'update_employee_status_schema',
    'reader_connect_schema',
    'reader_keystrokes_schema',
    'reader_settings_schema',
    'manual_scan_schema',
    'validate_data',
]
