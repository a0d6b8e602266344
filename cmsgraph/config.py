"""Runtime settings loaded from the environment (and an optional ``.env``)."""

from __future__ import annotations

import os
from typing import Literal

from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError, model_validator

from cmsgraph.errors import ConfigurationError

AuthMethod = Literal["single_key", "basic", "bearer", "none"]


class GraphAuth(BaseModel):
    method: AuthMethod = "single_key"
    single_key: str | None = None
    username: str | None = None
    password: str | None = None
    token: str | None = None

    @model_validator(mode="after")
    def _check_credentials(self) -> GraphAuth:
        if self.method == "single_key" and not self.single_key:
            raise ValueError("single_key authentication requires GRAPH_SINGLE_KEY")
        if self.method == "basic" and not (self.username and self.password):
            raise ValueError("basic authentication requires GRAPH_USERNAME and GRAPH_PASSWORD")
        if self.method == "bearer" and not self.token:
            raise ValueError("bearer authentication requires GRAPH_TOKEN")
        return self


class Settings(BaseModel):
    endpoint: str
    auth: GraphAuth = Field(default_factory=lambda: GraphAuth(method="none"))
    timeout: float = 30.0
    cache_ttl: int = 300
    cache_max_size: int = 1000
    schema_cache_ttl: int = 3600
    default_locale: str = "en"
    max_fields: int = Field(default=50, ge=1, le=100)
    log_level: str = "INFO"

    @model_validator(mode="after")
    def _check_endpoint(self) -> Settings:
        if not self.endpoint.startswith(("http://", "https://")):
            raise ValueError(f"GRAPH_ENDPOINT must be an http(s) URL, got '{self.endpoint}'")
        return self


def load_settings(env_file: str | None = None) -> Settings:
    """Build ``Settings`` from environment variables.

    Raises ``ConfigurationError`` listing every invalid field.
    """
    load_dotenv(env_file)
    env = os.environ

    raw: dict[str, object] = {
        "endpoint": env.get("GRAPH_ENDPOINT", ""),
        "auth": {
            "method": env.get("GRAPH_AUTH_METHOD", "single_key"),
            "single_key": env.get("GRAPH_SINGLE_KEY"),
            "username": env.get("GRAPH_USERNAME"),
            "password": env.get("GRAPH_PASSWORD"),
            "token": env.get("GRAPH_TOKEN"),
        },
    }
    optional = {
        "timeout": "TIMEOUT",
        "cache_ttl": "CACHE_TTL",
        "cache_max_size": "CACHE_MAX_SIZE",
        "schema_cache_ttl": "SCHEMA_CACHE_TTL",
        "default_locale": "DEFAULT_LOCALE",
        "max_fields": "MAX_FIELDS",
        "log_level": "LOG_LEVEL",
    }
    for field_name, var in optional.items():
        value = env.get(var)
        if value:
            raw[field_name] = value

    try:
        return Settings.model_validate(raw)
    except ValidationError as e:
        problems = [
            f"{'.'.join(str(p) for p in err['loc']) or 'settings'}: {err['msg']}"
            for err in e.errors()
        ]
        raise ConfigurationError(
            "Invalid configuration: " + ", ".join(problems),
            details={"errors": problems},
        ) from e
