"""Configuration for the CouchDB client."""

import logging
import os
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

logger = logging.getLogger(__name__)

PASSWORD_ENV_VAR = "COUCHDB_PASS"
DEFAULT_MAX_BODY_SIZE = 10 * 1024 * 1024


class CouchDBConfig(BaseModel):
    """Connection parameters and credentials for a CouchDB instance.

    If ``user_password`` is not given (or given empty), the value of the
    ``COUCHDB_PASS`` environment variable is used instead, so the password
    does not have to live in code:

        COUCHDB_PASS=myPassword python run.py
    """

    model_config = ConfigDict(frozen=True)

    scheme: Literal["http", "https"] = Field(
        default="http", description="URL scheme used for requests"
    )
    host: str = Field(default="127.0.0.1", description="CouchDB host")
    port: int = Field(default=5984, description="CouchDB port")
    user_name: str = Field(default="", description="CouchDB user name")
    user_password: str = Field(
        default="",
        description="CouchDB user password",
        repr=False,
        validate_default=True,
    )
    request_timeout: int = Field(
        default=30, description="Request timeout in seconds"
    )
    max_body_size: int = Field(
        default=DEFAULT_MAX_BODY_SIZE,
        description="Read ceiling in bytes for response bodies without Content-Length",
    )

    @field_validator("scheme", mode="before")
    @classmethod
    def normalize_scheme(cls, v: Any) -> Any:
        """Accept the scheme in any letter case."""
        if isinstance(v, str):
            return v.strip().lower()
        return v

    @field_validator("port")
    @classmethod
    def validate_port(cls, v: int) -> int:
        if not 1 <= v <= 65535:
            raise ValueError(f"Port must be in range 1-65535, got {v}")
        return v

    @field_validator("request_timeout", "max_body_size")
    @classmethod
    def validate_positive(cls, v: int) -> int:
        if v <= 0:
            raise ValueError(f"Value must be positive, got {v}")
        return v

    @field_validator("user_password", mode="before")
    @classmethod
    def password_from_environment(cls, v: Any) -> Any:
        """Fall back to COUCHDB_PASS when no password was provided."""
        if v is None or v == "":
            env_password = os.getenv(PASSWORD_ENV_VAR)
            if env_password:
                logger.debug(f"Using password from {PASSWORD_ENV_VAR}")
                return env_password
            return ""
        return v

    @property
    def base_url(self) -> str:
        """Base URL of the CouchDB instance, e.g. ``http://127.0.0.1:5984``."""
        return f"{self.scheme}://{self.host}:{self.port}"
