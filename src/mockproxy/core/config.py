"""
Configuration
=============
Resolves the server configuration from three layers, lowest first:

  1. Built-in defaults (port 3000, 10 s proxy timeout, …)
  2. Environment variables, with a .env file in the working directory loaded first
  3. Command-line flags

The command line itself lives in `mockproxy.mock_server`; this module only
validates what it collected. The core only ever sees the resolved `Settings`:
{mode, upstream_url, timeout_seconds, capture_enabled, fixture_root}.
"""

import os
from dataclasses import dataclass
from typing import Optional

from mockproxy.core.models import ServingMode

DEFAULT_PORT = 3000
DEFAULT_HOST = "0.0.0.0"
DEFAULT_PROXY_TIMEOUT = 10.0


class ConfigError(ValueError):
    """Raised when the supplied options cannot describe a runnable server."""


@dataclass(frozen=True)
class Settings:
    mode: ServingMode
    upstream_url: Optional[str] = None
    timeout_seconds: float = DEFAULT_PROXY_TIMEOUT
    capture_enabled: bool = False
    fixture_root: Optional[str] = None
    proxy_first_passthrough: bool = False
    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT


def resolve_mode(
    upstream_url: Optional[str],
    fixture_root: Optional[str],
    proxy_full: bool = False,
    proxy_first: bool = False,
) -> ServingMode:
    """
    Pick the initial serving mode.

    No upstream                          → FULL_MOCK
    Upstream, --proxy-full or no fixtures → FULL_PROXY
    Upstream, --proxy-first               → PROXY_FIRST
    Upstream otherwise                    → MOCK_FIRST
    """
    if not upstream_url:
        return ServingMode.FULL_MOCK
    if proxy_full or not fixture_root:
        return ServingMode.FULL_PROXY
    if proxy_first:
        return ServingMode.PROXY_FIRST
    return ServingMode.MOCK_FIRST


def build_settings(
    upstream_url: Optional[str] = None,
    fixture_root: Optional[str] = None,
    proxy_full: bool = False,
    proxy_first: bool = False,
    proxy_first_passthrough: bool = False,
    timeout_seconds: float = DEFAULT_PROXY_TIMEOUT,
    capture_enabled: bool = False,
    host: str = DEFAULT_HOST,
    port: int = DEFAULT_PORT,
) -> Settings:
    """Validate raw options and turn them into Settings."""
    upstream_url = upstream_url.rstrip("/") if upstream_url else None

    if capture_enabled and not fixture_root:
        raise ConfigError("Cannot record without a fixture directory")
    if not fixture_root and not upstream_url:
        raise ConfigError("A fixture directory is required unless a proxy target is given")
    if timeout_seconds <= 0:
        raise ConfigError(f"Proxy timeout must be positive, got {timeout_seconds}")

    return Settings(
        mode=resolve_mode(upstream_url, fixture_root, proxy_full, proxy_first),
        upstream_url=upstream_url,
        timeout_seconds=timeout_seconds,
        # Recording only makes sense when something is being proxied
        capture_enabled=bool(capture_enabled and upstream_url),
        fixture_root=os.path.abspath(fixture_root) if fixture_root else None,
        proxy_first_passthrough=proxy_first_passthrough,
        host=host,
        port=port,
    )

