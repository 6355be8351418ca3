schema = {
    "type": "object",
    "properties": {
        "keys": {"type": "string"},
    },
    "required": ["keys"],
}
