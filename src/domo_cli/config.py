"""Configuration and logging setup for the Domo CLI."""

import json
import logging
import os
import pathlib
import sys
from typing import Any

import pydantic
import structlog

from .publicapi import auth, client

CONFIG_ENV_VAR = "DOMO_CONFIG_PATH"

# Consulted in order when no editor is configured.
EDITOR_ENV_VARS = ("DOMO_EDITOR", "VISUAL", "EDITOR")
FALLBACK_EDITOR = "vi"


def default_editor() -> str:
    """Return the editor command from the environment, or a system default."""
    for name in EDITOR_ENV_VARS:
        if value := os.environ.get(name, "").strip():
            return value
    return FALLBACK_EDITOR


class ClientConfig(pydantic.BaseModel):
    """Configuration for the Domo CLI."""

    host: str = pydantic.Field(client.DEFAULT_HOST, description="Base URL of the API")
    client_id: str = pydantic.Field(description="Public API client id", min_length=1)
    client_secret: pydantic.SecretStr = pydantic.Field(
        description="Public API client secret",
    )
    editor: str = pydantic.Field(
        default_factory=default_editor,
        description="Editor command used for create and update",
    )
    scope: str = pydantic.Field(auth.DEFAULT_SCOPE, description="OAuth scopes to request")
    timeout: float = pydantic.Field(
        client.DEFAULT_TIMEOUT,
        description="Request timeout in seconds",
        gt=0,
    )
    log_level: str = pydantic.Field("WARNING", description="Logging level")

    @pydantic.field_validator("host")
    @classmethod
    def _check_host(cls, value: str) -> str:
        if not value.startswith(("http://", "https://")):
            msg = "host must be an http:// or https:// URL"
            raise ValueError(msg)
        return value.rstrip("/")

    @pydantic.field_validator("client_secret")
    @classmethod
    def _check_secret(cls, value: pydantic.SecretStr) -> pydantic.SecretStr:
        if not value.get_secret_value():
            msg = "client secret cannot be empty"
            raise ValueError(msg)
        return value

    def credentials(self) -> auth.Credentials:
        return auth.Credentials(
            host=self.host,
            client_id=self.client_id,
            client_secret=self.client_secret.get_secret_value(),
        )


def _stderr_logger(*args: Any) -> structlog.PrintLogger:
    # sys.stderr is resolved per call, not at configure time.
    return structlog.PrintLogger(sys.stderr)


def configure_logging(log_level_name: str) -> None:
    """Configure structlog for logfmt output on stderr."""
    log_level = getattr(logging, log_level_name.upper(), logging.WARNING)
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.EventRenamer("msg"),
            structlog.processors.format_exc_info,
            structlog.processors.LogfmtRenderer(
                key_order=("timestamp", "level", "msg"),
            ),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=_stderr_logger,
        cache_logger_on_first_use=False,
    )


def read_config_file(config_path: str | None) -> dict[str, Any]:
    """Read settings from a JSON file.

    Uses ``config_path``, else the path in ``DOMO_CONFIG_PATH``. Returns an
    empty mapping when neither is set.
    """
    resolved_path = config_path or os.environ.get(CONFIG_ENV_VAR)
    if not resolved_path:
        return {}

    path = pathlib.Path(resolved_path)
    if not path.exists():
        msg = f"Configuration file not found: {resolved_path}"
        raise FileNotFoundError(msg)

    with path.open("r") as f:
        data = json.load(f)
    if not isinstance(data, dict):
        msg = f"Configuration file must contain a JSON object: {resolved_path}"
        raise ValueError(msg)
    return data


def load_config(config_path: str | None = None, **overrides: Any) -> ClientConfig:
    """Build the configuration from the config file and explicit overrides.

    Overrides set to None are ignored, so unset command-line options fall
    back to the file and then to the defaults.
    """
    data = read_config_file(config_path)
    data.update({key: value for key, value in overrides.items() if value is not None})
    return ClientConfig(**data)
