schema = {
    "type": "object",
    "properties": {
        "card_id": {"type": ["string", "null"]},
    },
}
