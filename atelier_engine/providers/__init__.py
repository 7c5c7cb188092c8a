"""Backend registry."""

from __future__ import annotations

from .base import ProviderRegistry
from .dryrun import DryRunBackend
from .gemini import GeminiBackend


def default_registry() -> ProviderRegistry:
    return ProviderRegistry(
        [
            DryRunBackend(),
            GeminiBackend(),
        ]
    )
