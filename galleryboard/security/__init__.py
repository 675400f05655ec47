"""Security utilities package."""

from __future__ import annotations

from .credential_provider import (
    ChainedSecretProvider,
    SecretNotFoundError,
    SecretProvider,
    build_secret_provider,
)

__all__ = [
    "ChainedSecretProvider",
    "SecretNotFoundError",
    "SecretProvider",
    "build_secret_provider",
]
