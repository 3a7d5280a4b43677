"""
Process-wide configuration.
Reads the environment (and a local .env file) once into a Settings object
that the app factory hands to every service it constructs.
"""

import os
from dataclasses import dataclass, field
from typing import List, Optional

from dotenv import load_dotenv
from flask import current_app

# Load .env only once here
load_dotenv()

MAX_UPLOAD_BYTES = 5 * 1024 * 1024  # 5 MB
# Boundaries and part headers around a multipart file
MULTIPART_OVERHEAD_BYTES = 64 * 1024


def _split_origins(raw: Optional[str]) -> List[str]:
    if not raw:
        return ["http://localhost:5173"]
    return [o.strip() for o in raw.split(",") if o.strip()]


@dataclass
class Settings:
    jwt_secret: str
    token_expiration_minutes: int = 1440  # Default 24 hours
    mongo_uri: str = "mongodb://localhost:27017/gatherguru"
    mongo_db_name: Optional[str] = None
    mongo_timeout_ms: int = 5000
    allowed_origins: List[str] = field(default_factory=lambda: ["http://localhost:5173"])
    port: int = 5000
    environment: str = "development"
    debug: bool = False

    storage_backend: str = "local"
    upload_dir: str = "uploads"
    storage_timeout_seconds: int = 30
    aws_access_key_id: Optional[str] = None
    aws_secret_access_key: Optional[str] = None
    aws_region: str = "us-east-1"
    s3_bucket_name: str = "gatherguru-uploads"
    cloudfront_distribution_id: Optional[str] = None

    rate_limit_max: int = 50
    rate_limit_window_seconds: int = 15 * 60
    max_content_length: int = MAX_UPLOAD_BYTES + MULTIPART_OVERHEAD_BYTES
    max_json_length: int = MAX_UPLOAD_BYTES
    cookie_samesite: str = "Lax"

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @classmethod
    def from_env(cls) -> "Settings":
        """
        Build settings from environment variables.

        Raises:
            RuntimeError: If JWT_SECRET is not set.
        """
        jwt_secret = os.getenv("JWT_SECRET")
        if not jwt_secret:
            raise RuntimeError("JWT_SECRET is missing. Set it in .env")

        return cls(
            jwt_secret=jwt_secret,
            token_expiration_minutes=int(os.getenv("TOKEN_EXPIRATION_MINUTES", 1440)),
            mongo_uri=os.getenv("MONGO_URI", "mongodb://localhost:27017/gatherguru"),
            mongo_db_name=os.getenv("MONGO_DB_NAME") or None,
            mongo_timeout_ms=int(os.getenv("MONGO_TIMEOUT_MS", 5000)),
            allowed_origins=_split_origins(os.getenv("ALLOWED_ORIGINS")),
            port=int(os.getenv("PORT", 5000)),
            environment=os.getenv("NODE_ENV", "development"),
            debug=os.getenv("FLASK_DEBUG", "").lower() in ("1", "true", "yes"),
            storage_backend=os.getenv("STORAGE_BACKEND", "local").lower(),
            upload_dir=os.path.abspath(os.getenv("UPLOAD_DIR", "uploads")),
            storage_timeout_seconds=int(os.getenv("STORAGE_TIMEOUT_SECONDS", 30)),
            aws_access_key_id=os.getenv("AWS_ACCESS_KEY_ID"),
            aws_secret_access_key=os.getenv("AWS_SECRET_ACCESS_KEY"),
            aws_region=os.getenv("AWS_REGION", "us-east-1"),
            s3_bucket_name=os.getenv("S3_BUCKET_NAME", "gatherguru-uploads"),
            cloudfront_distribution_id=os.getenv("CLOUDFRONT_DISTRIBUTION_ID") or None,
            rate_limit_max=int(os.getenv("RATE_LIMIT_MAX", 50)),
            rate_limit_window_seconds=int(os.getenv("RATE_LIMIT_WINDOW_SECONDS", 15 * 60)),
            cookie_samesite=os.getenv("COOKIE_SAMESITE", "Lax"),
        )


SETTINGS_KEY = "gatherguru.settings"


def get_settings() -> Settings:
    """Settings of the running application."""
    return current_app.extensions[SETTINGS_KEY]
