from __future__ import annotations
import logging
from pathlib import Path
from typing import Any, Dict, Optional

import httpx
from dotenv import load_dotenv

from .config_loader import load_config
from .engine import StreamingEngine
from .providers.descriptor import ProviderDescriptor
from .report_service import ReportService
from .secrets.sources import SecretsResolver
from .transport.client import ProxyConfig, TransportClient

_logger = logging.getLogger(__name__)


def build_descriptor(cfg: Dict[str, Any], resolver: Optional[SecretsResolver] = None) -> ProviderDescriptor:
    """
    Validated descriptor from a loaded config. An explicit llm.api_key wins;
    otherwise the key is resolved through the configured secret sources.
    """
    llm = cfg["llm"]
    provider = llm["provider"]
    api_key = llm.get("api_key")
    if not api_key:
        if resolver is None:
            secrets_cfg = cfg.get("secrets") or {}
            resolver = SecretsResolver(
                method=secrets_cfg.get("method", "env"),
                mapping=secrets_cfg.get("mapping", {}),
            )
        api_key = resolver.secret(provider, "api_key")
    return ProviderDescriptor.create(
        provider,
        api_key=api_key,
        model=llm["model"],
        base_url=llm.get("base_url"),
    )


def build_proxy(cfg: Dict[str, Any]) -> ProxyConfig:
    p = cfg.get("proxy") or {}
    return ProxyConfig(
        enabled=bool(p.get("enabled", False)),
        http_proxy=p.get("http_proxy") or "",
        https_proxy=p.get("https_proxy") or "",
    )


def build_app(
    config_path: Path,
    *,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> Dict[str, Any]:
    """
    Composition root: load YAML, resolve the provider descriptor, build the
    shared transport client, engine and report service.
    Returns: dict with cfg, paths, descriptor, transport, engine, reports.
    Every configuration problem surfaces here as ConfigError, before any request.
    """
    load_dotenv()
    cfg = load_config(config_path)
    config_dir = config_path.resolve().parent

    descriptor = build_descriptor(cfg)
    timeout = cfg["runtime"]["timeout"]
    client = TransportClient(timeout=timeout, proxy=build_proxy(cfg), transport=transport)
    engine = StreamingEngine(client, timeout=timeout)
    reports = ReportService(engine, max_commits=cfg["report"].get("max_commits", 100))

    _logger.debug("Configured %r (timeout=%gs)", descriptor, timeout)
    return {
        "cfg": cfg,
        "paths": {"config_dir": config_dir},
        "descriptor": descriptor,
        "transport": client,
        "engine": engine,
        "reports": reports,
    }
