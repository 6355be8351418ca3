schema = {
    "type": "object",
    "properties": {
        "port": {"type": "string", "minLength": 1},
        "baud_rate": {"type": "integer", "minimum": 300, "maximum": 4000000},
    },
    "required": ["port"],
}
