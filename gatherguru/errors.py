"""
Error taxonomy shared by every service.
Controllers raise these; the gateway renders them as JSON.
"""

from typing import Any, Dict, Optional


class ApiError(Exception):
    status = 500
    default_message = "Something went wrong!"

    def __init__(self, message: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        super().__init__(message or self.default_message)
        self.message = message or self.default_message
        self.details = details


class Unauthorized(ApiError):
    status = 401
    default_message = "Not authorized to access this route"


class Forbidden(ApiError):
    status = 403
    default_message = "Not authorized to access this route"


class ValidationError(ApiError):
    status = 400
    default_message = "Invalid request"


class NotFound(ApiError):
    status = 404
    default_message = "Resource not found"


class CorsRejection(ApiError):
    status = 403
    default_message = "CORS policy violation"


class UploadError(ApiError):
    default_message = "Failed to upload file"


class DeleteError(ApiError):
    default_message = "Failed to delete file"
