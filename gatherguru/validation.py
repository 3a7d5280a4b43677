"""
Request body helpers shared by the route handlers.
"""

from typing import Any, Dict, Optional

from flask import request

from gatherguru.errors import ValidationError


def json_body() -> Dict[str, Any]:
    """
    The request's JSON body as a dict.

    A missing or unparseable body counts as empty; anything other than a
    JSON object is rejected.

    Raises:
        ValidationError: The body is JSON but not an object.
    """
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    return data


def str_field(data: Dict[str, Any], key: str) -> Optional[str]:
    """
    Read an optional string field, stripped.

    Raises:
        ValidationError: The field is present but not a string.
    """
    value = data.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationError(f"{key} must be a string")
    return value.strip()
