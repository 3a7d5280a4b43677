"""
JSON response helpers: every body carries a "success" flag.
"""

from typing import Any, Dict, Optional, Tuple

from flask import Response, jsonify


def ok(payload: Optional[Dict[str, Any]] = None, status: int = 200) -> Tuple[Response, int]:
    data: Dict[str, Any] = {"success": True}
    if payload:
        data.update(payload)
    return jsonify(data), status


def fail(message: str, status: int, **extra: Any) -> Tuple[Response, int]:
    data: Dict[str, Any] = {"success": False, "message": message}
    data.update({k: v for k, v in extra.items() if v is not None})
    return jsonify(data), status
