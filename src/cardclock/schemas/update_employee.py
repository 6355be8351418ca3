schema = {
    "type": "object",
    "properties": {
        "name": {"type": "string"},
        "department": {"type": "string"},
    },
    "additionalProperties": False,
    "minProperties": 1,
}
