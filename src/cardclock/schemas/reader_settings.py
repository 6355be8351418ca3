# Partial update of the operator reader settings
schema = {
    "type": "object",
    "properties": {
        "auto_connect_on_startup": {"type": "boolean"},
        "auto_connect_on_device_plug": {"type": "boolean"},
        "play_sound_on_scan": {"type": "boolean"},
        "baud_rate": {"type": "integer", "minimum": 300, "maximum": 4000000},
        "preferred_device_class": {"type": "string", "enum": ["reader", "generic"]},
        "last_connected_port": {"type": ["string", "null"]},
        "input_mode": {"type": "string", "enum": ["serial", "keyboard"]},
    },
    "additionalProperties": False,
    "minProperties": 1,
}
