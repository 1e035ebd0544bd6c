"""AI providers, prompt context, and the assistant conversation."""

from .client import ClientSettings, Provider, ProviderError, build_provider

__all__ = ["ClientSettings", "Provider", "ProviderError", "build_provider"]
