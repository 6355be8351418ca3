schema = {
    "type": "object",
    "properties": {
        "status": {"type": "string", "enum": ["Active", "Inactive", "active", "inactive"]},
    },
    "required": ["status"],
}
