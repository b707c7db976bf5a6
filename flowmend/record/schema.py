#flowmend/record/schema.py
# Schemas for the stricter import-compatibility check. Each one covers a
# single violation category so the first failing schema names the problem.

IMPORT_ID_SCHEMA = {
    "type": "object",
    "required": ["id"],
    "properties": {
        "id": {"type": "string", "minLength": 1}
    }
}

IMPORT_NODES_SCHEMA = {
    "type": "object",
    "required": ["nodes"],
    "properties": {
        "nodes": {
            "type": "array",
            "minItems": 1
        }
    }
}

# n8n can generate a missing node id on import, so only name/type are required
NODE_FIELDS_SCHEMA = {
    "type": "object",
    "required": ["name", "type"],
    "properties": {
        "name": {"type": "string", "minLength": 1},
        "type": {"type": "string", "minLength": 1}
    },
    "additionalProperties": True
}

NODE_POSITION_SCHEMA = {
    "type": "object",
    "required": ["position"],
    "properties": {
        "position": {
            "type": "array",
            "items": {"type": "number"},
            "minItems": 2,
            "maxItems": 2
        }
    },
    "additionalProperties": True
}

# connections[<source node name>] = {"main": [[{node, type, index}, ...], ...]}
CONNECTION_ENTRY_SCHEMA = {
    "type": "object",
    "required": ["main"],
    "properties": {
        "main": {"type": "array"}
    },
    "additionalProperties": True
}
