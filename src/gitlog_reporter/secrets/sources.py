# src/gitlog_reporter/secrets/sources.py

from __future__ import annotations
from typing import Protocol, Optional, Dict, Iterable, List, Union
import os, sys, getpass, subprocess
import logging

import keyring as _keyring
from keyring.errors import KeyringError

from gitlog_reporter.core.errors import ConfigError

_logger = logging.getLogger(__name__)

# Environment variable each provider's key is conventionally exported under
DEFAULT_ENV_NAMES = {
    "openai": "OPENAI_API_KEY",
    "anthropic": "ANTHROPIC_API_KEY",
    "google": "GEMINI_API_KEY",
}

KEYRING_SERVICE_PREFIX = "gitlog-reporter"


class SecretSource(Protocol):
    def get(self, service: str) -> Optional[str]: ...


class EnvSource:
    def get(self, service: str) -> Optional[str]:
        # 1) exact env var name
        val = os.getenv(service)
        if val:
            return val.strip()
        # 2) derived names
        for key in (f"{service.upper()}_API_KEY", service.upper()):
            val = os.getenv(key)
            if val:
                return val.strip()
        return None


class SystemKeyringSource:
    """
    Looks under service `gitlog-reporter:<name>` first, then plain `<name>`.
    Backend failures (locked keychain, no backend) count as a miss.
    """

    def get(self, service: str) -> Optional[str]:
        for svc in (f"{KEYRING_SERVICE_PREFIX}:{service}", service):
            val = self._lookup(svc)
            if val:
                return val
        if sys.platform == "darwin":
            return self._security_cli(service)
        return None

    @staticmethod
    def _lookup(service: str) -> Optional[str]:
        try:
            cred = _keyring.get_credential(service, None)
            if cred and getattr(cred, "password", None):
                return cred.password.strip()
            for account in ("API_KEY", "default", getpass.getuser()):
                val = _keyring.get_password(service, account)
                if val:
                    return val.strip()
        except KeyringError as e:
            _logger.debug("Keyring lookup for %s failed: %s", service, e)
        return None

    @staticmethod
    def _security_cli(service: str) -> Optional[str]:
        try:
            p = subprocess.run(
                ["security", "find-generic-password", "-s", service, "-w"],
                capture_output=True, text=True, check=False
            )
        except OSError as e:
            _logger.debug("macOS security CLI unavailable: %s", e)
            return None
        if p.returncode == 0 and p.stdout.strip():
            return p.stdout.strip()
        return None


SECRET_METHODS = {"env", "keyring"}


def normalise_methods(method: Union[str, Iterable[str]]) -> List[str]:
    if isinstance(method, str):
        methods = [method]
    else:
        methods = list(method)
    norm = []
    for m in methods:
        key = str(m).strip().lower()
        if key not in SECRET_METHODS:
            raise ConfigError(f"Unknown secrets method '{m}'. Allowed: {sorted(SECRET_METHODS)}")
        if key not in norm:
            norm.append(key)
    return norm


def build_secret_sources(method: Union[str, Iterable[str]]) -> List[SecretSource]:
    sources: List[SecretSource] = []
    for name in normalise_methods(method):
        if name == "env":
            sources.append(EnvSource())
        elif name == "keyring":
            sources.append(SystemKeyringSource())
    return sources


class SecretsResolver:
    """
    Resolve secrets using one or more methods in order.
    mapping: per-provider map of names -> service/env-key
      e.g. { "openai": { "api_key": "OPENAI_API_KEY" } } or { "google": { "api_key": "GOOGLE_API_KEY" } }
    Unmapped providers fall back to DEFAULT_ENV_NAMES, then to the provider name.
    """
    def __init__(self, method: Union[str, Iterable[str]], mapping: Optional[Dict[str, Dict[str, str]]] = None):
        self._sources = build_secret_sources(method)
        self._map = mapping or {}

    def secret(self, provider: str, name: str = "api_key") -> Optional[str]:
        default = DEFAULT_ENV_NAMES.get(provider, provider) if name == "api_key" else provider
        service = self._map.get(provider, {}).get(name, default)
        for src in self._sources:
            val = src.get(service)
            if val:
                return val
        return None
