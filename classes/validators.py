import re
import bleach
from classes.errors import ValidationError

PHONE_PATTERN = re.compile(r"^\+?[\d\s\-()]{10,15}$")
EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def require_json(data):
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    return data


def validate_length(field_name, value, min_length=None, max_length=None):
    if min_length is not None and len(value) < min_length:
        raise ValidationError(
            f"{field_name} must be at least {min_length} characters.",
            details=[{"field": field_name, "message": "too short"}],
        )
    if max_length is not None and len(value) > max_length:
        raise ValidationError(
            f"{field_name} must be {max_length} characters or fewer.",
            details=[{"field": field_name, "message": "too long"}],
        )


def parse_secret(data, field_name, min_length=None, max_length=None):
    """Read a password field verbatim; markup is not stripped."""
    value = data.get(field_name)
    if value is None:
        value = ""
    if not isinstance(value, str):
        raise ValidationError(
            f"{field_name} must be a string",
            details=[{"field": field_name, "message": "expected string"}],
        )
    validate_length(field_name, value, min_length, max_length)
    return value


def clean_text(data, field_name, required=False, min_length=None, max_length=None):
    """Strip markup from a free-text field and check its length."""
    value = data.get(field_name)
    if value is None or (isinstance(value, str) and not value.strip()):
        if required:
            raise ValidationError(
                f"{field_name} is required",
                details=[{"field": field_name, "message": "required"}],
            )
        return None
    if not isinstance(value, str):
        raise ValidationError(
            f"{field_name} must be a string",
            details=[{"field": field_name, "message": "expected string"}],
        )
    value = bleach.clean(value, tags=[], strip=True).strip()
    validate_length(field_name, value, min_length, max_length)
    return value


def parse_int(data, field_name, required=False, default=None, min_value=None, max_value=None):
    value = data.get(field_name)
    if value is None:
        if required:
            raise ValidationError(
                f"{field_name} is required",
                details=[{"field": field_name, "message": "required"}],
            )
        return default
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(
            f"{field_name} must be an integer",
            details=[{"field": field_name, "message": "expected integer"}],
        )
    _check_range(field_name, value, min_value, max_value)
    return value


def parse_number(data, field_name, required=False, default=None, min_value=None, max_value=None):
    value = data.get(field_name)
    if value is None:
        if required:
            raise ValidationError(
                f"{field_name} is required",
                details=[{"field": field_name, "message": "required"}],
            )
        return default
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValidationError(
            f"{field_name} must be a number",
            details=[{"field": field_name, "message": "expected number"}],
        )
    _check_range(field_name, value, min_value, max_value)
    return value


def parse_choice(data, field_name, choices, required=False, default=None):
    value = data.get(field_name)
    if value is None:
        if required:
            raise ValidationError(
                f"{field_name} is required",
                details=[{"field": field_name, "message": "required"}],
            )
        return default
    if value not in choices:
        raise ValidationError(
            f"{field_name} must be one of: {', '.join(choices)}",
            details=[{"field": field_name, "message": "invalid choice"}],
        )
    return value


def parse_bool(data, field_name, default=False):
    value = data.get(field_name, default)
    if not isinstance(value, bool):
        raise ValidationError(
            f"{field_name} must be a boolean",
            details=[{"field": field_name, "message": "expected boolean"}],
        )
    return value


def validate_phone(field_name, value):
    if value is not None and not PHONE_PATTERN.match(value):
        raise ValidationError(
            "Invalid WhatsApp number format",
            details=[{"field": field_name, "message": "invalid format"}],
        )
    return value


def validate_email(field_name, value):
    if not EMAIL_PATTERN.match(value or ""):
        raise ValidationError(
            "Invalid email address",
            details=[{"field": field_name, "message": "invalid format"}],
        )
    return value


def validate_options(options):
    """Question options: an ordered list of 2 to 4 non-empty strings."""
    if not isinstance(options, list) or not 2 <= len(options) <= 4:
        raise ValidationError(
            "options must be a list of 2 to 4 choices",
            details=[{"field": "options", "message": "expected 2-4 items"}],
        )
    cleaned = []
    for index, option in enumerate(options):
        if not isinstance(option, str) or not option.strip():
            raise ValidationError(
                "Each option must be a non-empty string",
                details=[{"field": f"options[{index}]", "message": "expected non-empty string"}],
            )
        cleaned.append(bleach.clean(option, tags=[], strip=True).strip())
    return cleaned


def _check_range(field_name, value, min_value, max_value):
    if min_value is not None and value < min_value:
        raise ValidationError(
            f"{field_name} must be at least {min_value}",
            details=[{"field": field_name, "message": "too small"}],
        )
    if max_value is not None and value > max_value:
        raise ValidationError(
            f"{field_name} must be at most {max_value}",
            details=[{"field": field_name, "message": "too large"}],
        )
