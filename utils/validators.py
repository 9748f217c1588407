from utils.errors import ValidationError


def require_fields(data: dict, fields: list):
    missing = [f for f in fields if f not in data or data.get(f) in (None, "", [])]
    if missing:
        raise ValidationError(
            f"Missing required fields: {', '.join(missing)}",
            errors={"missing_fields": missing},
        )


def require_json(data):
    if not isinstance(data, dict):
        raise ValidationError("Invalid JSON or Content-Type not set to application/json")
    return data


def normalize_email(value):
    return (value or "").strip().lower()
