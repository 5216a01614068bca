# src/gitlog_reporter/config_loader.py

from __future__ import annotations
from pathlib import Path
from typing import Any, Dict
import yaml

from gitlog_reporter.core.errors import ConfigError
from gitlog_reporter.providers.descriptor import ProviderKind
from gitlog_reporter.secrets.sources import normalise_methods

_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def _require(d: Dict[str, Any], dotted: str, typ: type) -> Any:
    cur: Any = d
    for k in dotted.split("."):
        if not isinstance(cur, dict) or k not in cur:
            raise ConfigError(f"Missing config key: {dotted}")
        cur = cur[k]
    if typ is str and not isinstance(cur, str):
        raise ConfigError(f"'{dotted}' must be a string")
    return cur


def _section(raw: Dict[str, Any], name: str) -> Dict[str, Any]:
    sec = raw.get(name)
    if sec is None:
        sec = {}
    if not isinstance(sec, dict):
        raise ConfigError(f"'{name}' must be a mapping")
    raw[name] = sec
    return sec


def load_config(path: Path) -> Dict[str, Any]:
    if not path or not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")
    try:
        raw = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as e:
        raise ConfigError(f"Config is not valid YAML: {path}: {e}") from e
    if not isinstance(raw, dict) or not raw:
        raise ConfigError(f"Config is empty or invalid YAML: {path}")

    # Required keys (no defaults here)
    _require(raw, "llm.provider", str)
    model = _require(raw, "llm.model", str)
    if not model.strip():
        raise ConfigError("'llm.model' must not be empty")

    # Normalise enumerations
    llm = raw["llm"]
    llm["provider"] = ProviderKind.parse(llm["provider"]).value
    for key in ("base_url", "api_key"):
        if llm.get(key) is not None and not isinstance(llm[key], str):
            raise ConfigError(f"'llm.{key}' must be a string")

    secrets = _section(raw, "secrets")
    method = secrets.get("method", "env")
    if not isinstance(method, (str, list)) or (
        isinstance(method, list) and not all(isinstance(m, str) for m in method)
    ):
        raise ConfigError("'secrets.method' must be a string or a list of strings")
    secrets["method"] = normalise_methods(method)
    mapping = secrets.get("mapping")
    if mapping is None:
        mapping = {}
    if not isinstance(mapping, dict) or not all(
        isinstance(names, dict) and all(isinstance(v, str) for v in names.values())
        for names in mapping.values()
    ):
        raise ConfigError("'secrets.mapping' must map providers to {name: service} mappings")
    secrets["mapping"] = mapping

    proxy = _section(raw, "proxy")
    if not isinstance(proxy.get("enabled", False), bool):
        raise ConfigError("'proxy.enabled' must be a boolean")
    for key in ("http_proxy", "https_proxy"):
        if proxy.get(key) is not None and not isinstance(proxy[key], str):
            raise ConfigError(f"'proxy.{key}' must be a string")

    runtime = _section(raw, "runtime")
    timeout = runtime.get("timeout", 90)
    if isinstance(timeout, bool) or not isinstance(timeout, (int, float)) or timeout <= 0:
        raise ConfigError("'runtime.timeout' must be a positive number of seconds")
    runtime["timeout"] = float(timeout)

    logging_cfg = _section(raw, "logging")
    level = str(logging_cfg.get("level", "WARNING")).upper()
    if level not in _LOG_LEVELS:
        raise ConfigError(f"Unknown logging.level '{level}' (expected one of {list(_LOG_LEVELS)}).")
    logging_cfg["level"] = level

    report = _section(raw, "report")
    max_commits = report.get("max_commits", 100)
    if isinstance(max_commits, bool) or not isinstance(max_commits, int) or max_commits < 1:
        raise ConfigError("'report.max_commits' must be a positive integer")

    return raw
