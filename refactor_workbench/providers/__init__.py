"""Provider registry and discovery."""

import os
from typing import Type

from .base import DirectoryListingError, ProviderError, WorkbenchProvider

# Registry of all available providers
_PROVIDERS: dict[str, Type[WorkbenchProvider]] = {}

DEFAULT_PROVIDER = os.environ.get("WORKBENCH_PROVIDER", "http")


def register_provider(provider_class: Type[WorkbenchProvider]) -> Type[WorkbenchProvider]:
    """Decorator to register a provider class."""
    _PROVIDERS[provider_class.name] = provider_class
    return provider_class


def get_provider(name: str, **options) -> WorkbenchProvider | None:
    """Get an instance of a provider by name."""
    provider_class = _PROVIDERS.get(name)
    if provider_class:
        return provider_class(**options)
    return None


def get_provider_names() -> list[str]:
    return sorted(_PROVIDERS)


# Import providers to trigger registration
from . import api  # noqa: F401, E402
from . import snapshot  # noqa: F401, E402

__all__ = [
    "DEFAULT_PROVIDER",
    "DirectoryListingError",
    "ProviderError",
    "WorkbenchProvider",
    "get_provider",
    "get_provider_names",
    "register_provider",
]
