from __future__ import annotations
from typing import Dict, Type, Callable
from importlib import import_module

from .descriptor import ProviderKind


class ProviderRegistry:
    _classes: Dict[ProviderKind, Type] = {}

    @classmethod
    def register(cls, kind: "ProviderKind | str") -> Callable[[Type], Type]:
        key = kind if isinstance(kind, ProviderKind) else ProviderKind.parse(kind)
        def deco(klass: Type) -> Type:
            cls._classes[key] = klass
            return klass
        return deco

    @classmethod
    def get(cls, kind: "ProviderKind | str") -> Type:
        key = kind if isinstance(kind, ProviderKind) else ProviderKind.parse(kind)
        if key not in cls._classes:
            raise KeyError(f"Provider '{key.value}' not registered")
        return cls._classes[key]

    @classmethod
    def ensure_imports(cls) -> None:
        """
        Import built-in adapters so their @register decorators run.
        Call once before get().
        """
        import_module("gitlog_reporter.providers.openai_adapter")
        import_module("gitlog_reporter.providers.anthropic_adapter")
        import_module("gitlog_reporter.providers.google_adapter")
