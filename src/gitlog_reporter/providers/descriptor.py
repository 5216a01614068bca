from __future__ import annotations
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from gitlog_reporter.core.errors import ConfigError


class ProviderKind(str, Enum):
    OPENAI = "openai"        # OpenAI and anything speaking /chat/completions
    ANTHROPIC = "anthropic"
    GOOGLE = "google"

    @classmethod
    def parse(cls, name: str) -> "ProviderKind":
        key = str(name).strip().lower()
        key = _ALIASES.get(key, key)
        try:
            return cls(key)
        except ValueError:
            allowed = sorted([k.value for k in cls] + list(_ALIASES))
            raise ConfigError(f"Unknown provider '{name}' (expected one of {allowed}).") from None


_ALIASES = {"claude": "anthropic", "gemini": "google"}

DEFAULT_BASE_URLS = {
    ProviderKind.OPENAI: "https://api.openai.com/v1",
    ProviderKind.ANTHROPIC: "https://api.anthropic.com",
    ProviderKind.GOOGLE: "https://generativelanguage.googleapis.com/v1beta",
}


@dataclass(frozen=True)
class ProviderDescriptor:
    """
    Which backend to talk to and how. Carries no behaviour; the registry
    maps `kind` to the adapter that knows the wire format.
    """

    kind: ProviderKind
    base_url: str
    api_key: str
    model: str

    @classmethod
    def create(
        cls,
        kind: "ProviderKind | str",
        *,
        api_key: Optional[str],
        model: Optional[str],
        base_url: Optional[str] = None,
    ) -> "ProviderDescriptor":
        """Build and validate in one go; raises ConfigError on missing key/model."""
        k = kind if isinstance(kind, ProviderKind) else ProviderKind.parse(kind)
        descriptor = cls(
            kind=k,
            base_url=(base_url or DEFAULT_BASE_URLS[k]).strip(),
            api_key=(api_key or "").strip(),
            model=(model or "").strip(),
        )
        descriptor.validate()
        return descriptor

    def validate(self) -> None:
        if not self.api_key:
            raise ConfigError(f"No API key configured for provider '{self.kind.value}'")
        if not self.model:
            raise ConfigError(f"No model configured for provider '{self.kind.value}'")
        if not self.base_url.startswith(("http://", "https://")):
            raise ConfigError(f"base_url must use http or https: {self.base_url!r}")

    @property
    def root(self) -> str:
        return self.base_url.rstrip("/")

    def __repr__(self) -> str:
        return (
            f"ProviderDescriptor(kind={self.kind.value!r}, base_url={self.base_url!r}, "
            f"api_key='***', model={self.model!r})"
        )
