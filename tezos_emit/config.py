"""Shared configuration loader for tezos-emit."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping
from urllib.parse import urlparse

import yaml


class ConfigurationError(RuntimeError):
    """Raised when configuration is invalid."""


DEFAULT_CONFIG_PATH = Path.home() / ".tezos-emit.yaml"
DEFAULT_RPC_URL = "http://127.0.0.1:8732"
_CONFIG_PATH_OVERRIDE: Path | None = None


@dataclass
class TezosConfig:
    """Connection and confirmation settings shared by the client components."""

    rpc_url: str = DEFAULT_RPC_URL
    chain: str = "main"
    timeout: float = 30.0
    confirmation_polling_interval: float = 10.0
    confirmation_polling_timeout: float = 180.0
    default_confirmations: int = 1
    max_read_failures: int = 5
    reinclusion_attempts: int = 5
    # levels below head scanned when tracking an operation of unknown origin
    search_depth: int = 60
    simulate_before_inject: bool = False
    secret_key: str | None = None

    @property
    def base_url(self) -> str:
        return self.rpc_url.rstrip("/")


def set_default_config_path(path: str | Path | None) -> None:
    """Remember a user-supplied config path for future loads."""

    global _CONFIG_PATH_OVERRIDE
    _CONFIG_PATH_OVERRIDE = Path(path).expanduser() if path else None


def _load_config_file(path: Path, *, required: bool) -> dict[str, Any]:
    if not path.exists():
        if required:
            raise ConfigurationError(f"Config file not found: {path}")
        return {}

    try:
        loaded = yaml.safe_load(path.read_text()) or {}
    except yaml.YAMLError as exc:  # pragma: no cover - delegated to PyYAML
        raise ConfigurationError(f"Invalid YAML in config file {path}: {exc}") from exc

    if not isinstance(loaded, dict):
        raise ConfigurationError(f"Expected {path} to contain a YAML object with an 'rpc' section")
    return loaded


def _section(file_config: Mapping[str, Any], name: str, path: Path) -> dict[str, Any]:
    section = file_config.get(name, {}) or {}
    if not isinstance(section, dict):
        raise ConfigurationError(f"Expected '{name}' to be a mapping in {path}")
    return section


def _coerce_bool(value: Any) -> bool | None:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        normalized = value.strip().lower()
        if normalized in {"1", "true", "yes", "y", "on"}:
            return True
        if normalized in {"0", "false", "no", "n", "off"}:
            return False
    return None


def _coerce_number(raw: Any, kind: type, *, source: str) -> Any:
    if raw is None:
        return None
    try:
        value = kind(raw)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(f"Invalid value in {source}: {raw}") from exc
    if value < 0:
        raise ConfigurationError(f"Negative value in {source}: {raw}")
    return value


def _first_value(*values: Any, default: Any = None) -> Any:
    for value in values:
        if value is not None:
            return value
    return default


def _validate_url(raw: str) -> str:
    parsed = urlparse(raw)
    if parsed.scheme not in {"http", "https"} or not parsed.hostname:
        raise ConfigurationError(f"Invalid RPC endpoint URL: {raw}")
    return raw


def load_config(
    *,
    config_path: str | Path | None = None,
    env: Mapping[str, str] | None = None,
    overrides: Mapping[str, Any] | None = None,
) -> TezosConfig:
    """Load node and confirmation settings from overrides, environment and optional YAML."""

    env_map = os.environ if env is None else env
    explicit_path = config_path is not None or _CONFIG_PATH_OVERRIDE is not None
    path = (
        Path(config_path).expanduser()
        if config_path is not None
        else _CONFIG_PATH_OVERRIDE or DEFAULT_CONFIG_PATH
    )

    file_config = _load_config_file(path, required=explicit_path)
    rpc_section = _section(file_config, "rpc", path)
    confirmation_section = _section(file_config, "confirmation", path)
    signer_section = _section(file_config, "signer", path)

    override_map = dict(overrides or {})

    rpc_url = _first_value(
        override_map.get("rpc_url"),
        env_map.get("TEZOS_EMIT_RPC_URL"),
        rpc_section.get("url"),
        DEFAULT_RPC_URL,
    )
    chain = _first_value(
        override_map.get("chain"), env_map.get("TEZOS_EMIT_CHAIN"), rpc_section.get("chain"), "main"
    )
    timeout = _first_value(
        _coerce_number(override_map.get("timeout"), float, source="overrides"),
        _coerce_number(rpc_section.get("timeout"), float, source=f"{path} rpc.timeout"),
        30.0,
    )
    interval = _first_value(
        _coerce_number(override_map.get("confirmation_polling_interval"), float, source="overrides"),
        _coerce_number(env_map.get("TEZOS_EMIT_POLL_INTERVAL"), float, source="environment"),
        _coerce_number(
            confirmation_section.get("polling_interval"),
            float,
            source=f"{path} confirmation.polling_interval",
        ),
        10.0,
    )
    poll_timeout = _first_value(
        _coerce_number(override_map.get("confirmation_polling_timeout"), float, source="overrides"),
        _coerce_number(env_map.get("TEZOS_EMIT_POLL_TIMEOUT"), float, source="environment"),
        _coerce_number(
            confirmation_section.get("polling_timeout"),
            float,
            source=f"{path} confirmation.polling_timeout",
        ),
        180.0,
    )
    confirmations = _first_value(
        _coerce_number(override_map.get("default_confirmations"), int, source="overrides"),
        _coerce_number(env_map.get("TEZOS_EMIT_CONFIRMATIONS"), int, source="environment"),
        _coerce_number(
            confirmation_section.get("default_confirmations"),
            int,
            source=f"{path} confirmation.default_confirmations",
        ),
        1,
    )
    max_read_failures = _first_value(
        _coerce_number(override_map.get("max_read_failures"), int, source="overrides"),
        _coerce_number(
            confirmation_section.get("max_read_failures"),
            int,
            source=f"{path} confirmation.max_read_failures",
        ),
        5,
    )
    reinclusion_attempts = _first_value(
        _coerce_number(override_map.get("reinclusion_attempts"), int, source="overrides"),
        _coerce_number(
            confirmation_section.get("reinclusion_attempts"),
            int,
            source=f"{path} confirmation.reinclusion_attempts",
        ),
        5,
    )
    search_depth = _first_value(
        _coerce_number(override_map.get("search_depth"), int, source="overrides"),
        _coerce_number(env_map.get("TEZOS_EMIT_SEARCH_DEPTH"), int, source="environment"),
        _coerce_number(
            confirmation_section.get("search_depth"),
            int,
            source=f"{path} confirmation.search_depth",
        ),
        60,
    )
    simulate = _first_value(
        _coerce_bool(override_map.get("simulate_before_inject")),
        _coerce_bool(env_map.get("TEZOS_EMIT_SIMULATE")),
        _coerce_bool(rpc_section.get("simulate_before_inject")),
        False,
    )
    secret_key = _first_value(
        override_map.get("secret_key"),
        env_map.get("TEZOS_EMIT_SECRET_KEY"),
        signer_section.get("secret_key"),
    )

    return TezosConfig(
        rpc_url=_validate_url(str(rpc_url)),
        chain=str(chain),
        timeout=float(timeout),
        confirmation_polling_interval=float(interval),
        confirmation_polling_timeout=float(poll_timeout),
        default_confirmations=int(confirmations),
        max_read_failures=int(max_read_failures),
        reinclusion_attempts=int(reinclusion_attempts),
        search_depth=int(search_depth),
        simulate_before_inject=bool(simulate),
        secret_key=secret_key,
    )
