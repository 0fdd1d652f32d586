"""
Configuration management for PERMIT_CACHE.

PermitSession can be built from direct parameters or from a PermitConfig,
which fills anything not passed explicitly from environment variables.
"""

import os
from collections.abc import Mapping
from typing import Any

from .constants import (DEFAULT_CHECK_METHOD, DEFAULT_TIMEOUT_SECONDS,
                        ENV_BACKEND_URL, ENV_CHECK_METHOD, ENV_DEFAULT_ANSWER,
                        ENV_LOGGED_IN_USER, ENV_TIMEOUT_SECONDS, FALSE_VALUES,
                        SUPPORTED_CHECK_METHODS, TRUE_VALUES)
from .exceptions import ConfigurationError


def parse_bool(value: str, config_key: str) -> bool:
    normalized = value.strip().lower()
    if normalized in TRUE_VALUES:
        return True
    if normalized in FALSE_VALUES:
        return False
    raise ConfigurationError(
        f"{config_key} must be a boolean (true/false)", config_key=config_key, config_value=value
    )


class PermitConfig:
    """
    Permission cache configuration.

    Example:
        # Using environment variables
        config = PermitConfig()
        session = PermitSession.from_config(config)

        # Or using direct parameters
        session = PermitSession(
            logged_in_user="alice",
            backend_url="https://pdp.example.com/check",
        )
    """

    def __init__(
        self,
        logged_in_user: str | None = None,
        backend_url: str | None = None,
        default_answer_if_not_exist: bool | None = None,
        method: str | None = None,
        timeout: float | None = None,
        headers: Mapping[str, str] | None = None,
        user_attributes: Mapping[str, Any] | None = None,
    ):
        """
        Initialize configuration.

        Args:
            logged_in_user: User the verdicts are fetched for
                            (defaults to PERMIT_LOGGED_IN_USER env var)
            backend_url: Decision backend check URL (defaults to PERMIT_BACKEND_URL)
            default_answer_if_not_exist: Verdict for unseen keys and failed single
                                         fetches (defaults to PERMIT_DEFAULT_ANSWER or False)
            method: HTTP method for single checks, GET or POST
                    (defaults to PERMIT_CHECK_METHOD or GET)
            timeout: Request timeout in seconds (defaults to PERMIT_TIMEOUT_SECONDS or 10)
            headers: Headers forwarded verbatim to the backend
            user_attributes: Static attributes of the logged-in user
        """
        self.logged_in_user = logged_in_user or os.getenv(ENV_LOGGED_IN_USER, "")
        self.backend_url = backend_url or os.getenv(ENV_BACKEND_URL, "")

        if default_answer_if_not_exist is None:
            raw_default = os.getenv(ENV_DEFAULT_ANSWER)
            default_answer_if_not_exist = (
                parse_bool(raw_default, ENV_DEFAULT_ANSWER) if raw_default else False
            )
        self.default_answer_if_not_exist = default_answer_if_not_exist

        self.method = (method or os.getenv(ENV_CHECK_METHOD, DEFAULT_CHECK_METHOD)).upper()

        if timeout is None:
            raw_timeout = os.getenv(ENV_TIMEOUT_SECONDS)
            try:
                timeout = float(raw_timeout) if raw_timeout else DEFAULT_TIMEOUT_SECONDS
            except ValueError as e:
                raise ConfigurationError(
                    f"{ENV_TIMEOUT_SECONDS} must be a number",
                    config_key=ENV_TIMEOUT_SECONDS,
                    config_value=raw_timeout,
                ) from e
        self.timeout = timeout

        self.headers = dict(headers or {})
        self.user_attributes = dict(user_attributes) if user_attributes else None

    def validate(self) -> None:
        """
        Validate configuration values.

        Raises:
            ConfigurationError: If required configuration is missing or invalid
        """
        validate_session_settings(self.logged_in_user, self.backend_url, self.method, self.timeout)


def validate_session_settings(
    logged_in_user: Any, backend_url: Any, method: str, timeout: float
) -> None:
    """
    Check the settings a session cannot run without.

    Raises:
        ConfigurationError: If the user or backend URL is missing, the method
                            is unsupported or the timeout is not positive
    """
    if not logged_in_user:
        raise ConfigurationError(
            f"logged_in_user is required (set {ENV_LOGGED_IN_USER} or pass directly)",
            config_key="logged_in_user",
        )

    if not backend_url or not isinstance(backend_url, str):
        raise ConfigurationError(
            "backend_url is required, put your backend check url here "
            f"(set {ENV_BACKEND_URL} or pass directly)",
            config_key="backend_url",
            config_value=backend_url or None,
        )

    if method not in SUPPORTED_CHECK_METHODS:
        raise ConfigurationError(
            f"method must be one of {', '.join(SUPPORTED_CHECK_METHODS)}, got {method}",
            config_key="method",
            config_value=method,
        )

    if timeout <= 0:
        raise ConfigurationError(
            f"timeout must be > 0, got {timeout}", config_key="timeout", config_value=timeout
        )
