"""Unified config: server, client polling policy, host and logging sections.

Defaults: loaded from config.yaml.example next to this module (single source of truth, no code-level defaults).
"""

import os
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

import yaml

CONFIG_ENV_VAR = "EDITOR_AGENT_CONFIG"
EXAMPLE_CONFIG_PATH = Path(__file__).resolve().parent / "config.yaml.example"

# Lazy-loaded example config (single source of truth for defaults)
_EXAMPLE_CONFIG: Optional[Dict[str, Any]] = None


def _load_example_config() -> Dict[str, Any]:
    """Load config.yaml.example as defaults. No code-level defaults."""
    global _EXAMPLE_CONFIG
    if _EXAMPLE_CONFIG is None:
        with open(EXAMPLE_CONFIG_PATH, encoding="utf-8") as f:
            _EXAMPLE_CONFIG = yaml.safe_load(f) or {}
    return _EXAMPLE_CONFIG


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Merge override into base. Override values take precedence."""
    out = dict(base)
    for k, v in override.items():
        if k in out and isinstance(out[k], dict) and isinstance(v, dict):
            out[k] = _deep_merge(out[k], v)
        else:
            out[k] = v
    return out


def _merged_config(cfg: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """Merge config with example so missing keys come from the example file."""
    return _deep_merge(_load_example_config(), cfg or {})


def _section(cfg: Optional[Dict[str, Any]], section: str) -> Dict[str, Any]:
    s = _merged_config(cfg).get(section)
    return s if isinstance(s, dict) else {}


def read_config(config_path: Optional[str] = None) -> Tuple[Dict[str, Any], str]:
    """Load YAML config merged over defaults. Returns (config, resolved_path).

    Resolution: explicit path, then $EDITOR_AGENT_CONFIG, then config/config.yaml in the
    working directory, then the bundled example.
    """
    config_path = config_path or os.environ.get(CONFIG_ENV_VAR, "config/config.yaml")
    if not Path(config_path).exists():
        config_path = str(EXAMPLE_CONFIG_PATH)
    config_path = str(Path(config_path).resolve())
    with open(config_path, "r", encoding="utf-8") as f:
        config = yaml.safe_load(f) or {}
    return _merged_config(config), config_path


def get_server_config(config: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """Return server config (host, port, cache refresh cadence, tick period, reload duration)."""
    s = _section(config, "server")
    return {
        "host": str(s.get("host")),
        "port": int(s.get("port")),
        "cache_refresh_interval_sec": float(s.get("cache_refresh_interval_sec")),
        "tick_interval_sec": float(s.get("tick_interval_sec")),
        "reload_duration_sec": float(s.get("reload_duration_sec")),
    }


def get_client_config(config: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """Return check-client polling policy. Bounds are tunable, not fixed."""
    c = _section(config, "client")
    return {
        "request_timeout_sec": float(c.get("request_timeout_sec")),
        "poll_interval_sec": float(c.get("poll_interval_sec")),
        "start_poll_attempts": int(c.get("start_poll_attempts")),
        "max_reconnect_failures": int(c.get("max_reconnect_failures")),
        "settle_delay_sec": float(c.get("settle_delay_sec")),
    }


def get_host_config(config: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """Return host config (source_root, include glob, reload_on_compile)."""
    h = _section(config, "host")
    return {
        "source_root": str(h.get("source_root")),
        "include": str(h.get("include")),
        "reload_on_compile": bool(h.get("reload_on_compile")),
    }


def get_logging_config(config: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    lg = _section(config, "logging")
    return {
        "level": str(lg.get("level")).upper(),
        "cli_level": str(lg.get("cli_level")).upper(),
        "format": str(lg.get("format")),
    }
