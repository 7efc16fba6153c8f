"""Authentication helpers for Databricks-backed domains.

This module centralizes creation of a Databricks WorkspaceClient for a
domain's configured profile and applies small but important normalization
rules (such as sanitizing the host URL) to avoid subtle SDK and API issues.
"""

import re
import threading

from databricks.sdk import WorkspaceClient
from databricks.sdk.core import Config

from domainops.core.errors import ConnectivityError


class AuthError(ConnectivityError):
    """Raised when Databricks authentication fails."""


_CLIENTS: dict[str | None, WorkspaceClient] = {}
_CLIENTS_LOCK = threading.Lock()


def _format_auth_error(message: str, profile: str | None) -> str:
    """Return a user-friendly auth error message."""
    login_match = re.search(r"databricks auth login ([^\s]+)", message)
    host = login_match.group(1) if login_match else None
    if host:
        cmd = "databricks auth login"
        if profile:
            cmd = f"{cmd} --profile {profile}"
        return (
            "Databricks authentication failed. Your refresh token is invalid.\n"
            f"Re-authenticate with:\n  $ {cmd}"
        )
    return f"Databricks authentication failed: {message}"


def _sanitize_host(host: str | None) -> str | None:
    """
    Normalize a Databricks host URL.

    - Removes query strings (e.g. '?o=123456789')
    - Removes trailing slashes
    """
    if not host:
        return host
    host = host.split("?", 1)[0]
    return host.rstrip("/")


def get_client(profile: str | None = None) -> WorkspaceClient:
    """
    Return a configured Databricks WorkspaceClient for a profile.

    Clients are created once per profile and shared between domain scans,
    since several domains usually live in the same workspace.
    """
    with _CLIENTS_LOCK:
        client = _CLIENTS.get(profile)
        if client is not None:
            return client
        try:
            cfg = Config(profile=profile) if profile else Config()
        except ValueError as exc:
            raise AuthError(_format_auth_error(str(exc), profile)) from exc
        cfg.host = _sanitize_host(cfg.host)
        client = WorkspaceClient(config=cfg)
        _CLIENTS[profile] = client
        return client
