schema = {
    "type": "object",
    "properties": {
        "card_id": {"type": "string"},
        "name": {"type": "string"},
        "department": {"type": ["string", "null"]},
    },
    "required": ["card_id", "name"],
}
