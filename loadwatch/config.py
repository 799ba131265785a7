"""Run configuration built from the command line and a settings file.

The configuration is resolved once at startup into an immutable
``RunConfig`` and passed explicitly to the engine and the monitor.

Precedence, applied field by field in ``merge_config``:
    command line  →  settings file  →  built-in default

A settings file value is only used when it is non-empty / non-zero, so a
file can leave any field unset. The settings file is TOML, with keys
either at the top level or under a ``[loadwatch]`` table:

    url = "https://example.com/"
    requests = 5000
    regions = ["us-east-1", "eu-west-1"]
    header = ["Accept: application/json"]

Settings file location: ``--settings`` → ``LOADWATCH_SETTINGS`` env →
``loadwatch.toml`` in the working directory. A missing file is not an
error.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

try:
    import tomllib
except ImportError:
    import tomli as tomllib  # type: ignore[import-not-found]

logger = logging.getLogger(__name__)

DEFAULT_SETTINGS_FILE = "loadwatch.toml"
DEFAULT_REGIONS = ("us-east-1", "eu-west-1", "ap-northeast-1")
SETTINGS_ENV_VAR = "LOADWATCH_SETTINGS"


class ConfigError(ValueError):
    """Raised for an unreadable settings file or an incomplete configuration."""


@dataclass(frozen=True)
class RunConfig:
    """Resolved configuration for one load-test run.

    Attributes:
        url: Target URL.
        method: HTTP method.
        body: Request body.
        concurrency: Concurrent requests per region.
        requests: Total requests to make (0 = run for ``timelimit``).
        timelimit: Seconds to spend at most; also drives the progress
            estimate when the expected request count is unknown.
        timeout: Per-request timeout in seconds.
        regions: Regions to run in.
        profile: Cloud credentials profile name.
        output: Path for the JSON summary, empty for none.
        headers: Extra request headers, ``"Name: value"``.
        settings: Settings file the configuration was read from.
    """

    url: str
    method: str = "GET"
    body: str = ""
    concurrency: int = 10
    requests: int = 1000
    timelimit: int = 3600
    timeout: int = 15
    regions: tuple[str, ...] = DEFAULT_REGIONS
    profile: str = ""
    output: str = ""
    headers: tuple[str, ...] = ()
    settings: str = DEFAULT_SETTINGS_FILE


@dataclass(frozen=True)
class ConfigOverrides:
    """Values given on the command line; None means "not given"."""

    url: str | None = None
    method: str | None = None
    body: str | None = None
    concurrency: int | None = None
    requests: int | None = None
    timelimit: int | None = None
    timeout: int | None = None
    regions: tuple[str, ...] | None = None
    profile: str | None = None
    output: str | None = None
    headers: tuple[str, ...] | None = None
    settings: str | None = None


# ─── Settings file ──────────────────────────────────────────────────────────


def load_settings_file(path: str | Path) -> dict[str, Any]:
    """Read settings from a TOML file.

    Returns an empty dict when the file does not exist.

    Raises:
        ConfigError: If the file exists but cannot be parsed.
    """
    path = Path(path)
    if not path.is_file():
        logger.debug("No settings file at %s", path)
        return {}
    try:
        with open(path, "rb") as f:
            data = tomllib.load(f)
    except (tomllib.TOMLDecodeError, OSError) as e:
        raise ConfigError(f"Error parsing settings file {path}: {e}") from e
    logger.debug("Loaded settings from %s", path)
    section = data.get("loadwatch")
    return section if isinstance(section, dict) else data


def _file_str(settings: dict[str, Any], key: str) -> str | None:
    value = settings.get(key)
    if value is None or value == "":
        return None
    if not isinstance(value, str):
        raise ConfigError(f"Setting '{key}' must be a string, got {value!r}")
    return value


def _file_int(settings: dict[str, Any], key: str) -> int | None:
    value = settings.get(key)
    if value is None or value == 0:
        return None
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConfigError(f"Setting '{key}' must be an integer, got {value!r}")
    return value


def _file_list(settings: dict[str, Any], *keys: str) -> tuple[str, ...] | None:
    for key in keys:
        value = settings.get(key)
        if value is None:
            continue
        if isinstance(value, str):
            value = [value]
        if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
            raise ConfigError(f"Setting '{key}' must be a list of strings")
        if value:
            return tuple(value)
    return None


def split_regions(values: tuple[str, ...] | list[str]) -> tuple[str, ...]:
    """Expand comma-separated region lists: ("a,b", "c") -> ("a", "b", "c")."""
    regions: list[str] = []
    for value in values:
        regions.extend(part.strip() for part in value.split(",") if part.strip())
    return tuple(regions)


# ─── Merge ──────────────────────────────────────────────────────────────────


def _pick(cli_value, file_value, default):
    if cli_value is not None:
        return cli_value
    if file_value is not None:
        return file_value
    return default


def merge_config(
    cli: ConfigOverrides, settings: dict[str, Any], settings_path: str = ""
) -> RunConfig:
    """Combine command-line values, settings file values and defaults.

    Raises:
        ConfigError: If no URL is given by either source, or a settings
            value has the wrong type.
    """
    url = _pick(cli.url, _file_str(settings, "url"), None)
    if not url:
        raise ConfigError(
            "A target URL is required: pass --url or set 'url' in the settings file"
        )

    regions = _pick(
        cli.regions or None, _file_list(settings, "regions", "region"), DEFAULT_REGIONS
    )
    headers = _pick(cli.headers or None, _file_list(settings, "headers", "header"), ())

    return RunConfig(
        url=url,
        method=_pick(cli.method, _file_str(settings, "method"), "GET"),
        body=_pick(cli.body, _file_str(settings, "body"), ""),
        concurrency=_pick(cli.concurrency, _file_int(settings, "concurrency"), 10),
        requests=_pick(cli.requests, _file_int(settings, "requests"), 1000),
        timelimit=_pick(cli.timelimit, _file_int(settings, "timelimit"), 3600),
        timeout=_pick(cli.timeout, _file_int(settings, "timeout"), 15),
        regions=split_regions(regions) or DEFAULT_REGIONS,
        profile=_pick(cli.profile, _file_str(settings, "profile"), ""),
        output=_pick(cli.output, _file_str(settings, "output"), ""),
        headers=tuple(headers),
        settings=settings_path or DEFAULT_SETTINGS_FILE,
    )


def resolve_settings_path(cli: ConfigOverrides) -> str:
    """Settings file path: command line, then env var, then default."""
    if cli.settings:
        return cli.settings
    if env := os.getenv(SETTINGS_ENV_VAR):
        return env
    return DEFAULT_SETTINGS_FILE


def build_config(cli: ConfigOverrides) -> RunConfig:
    """Resolve the full run configuration once at startup."""
    path = resolve_settings_path(cli)
    return merge_config(cli, load_settings_file(path), settings_path=path)
