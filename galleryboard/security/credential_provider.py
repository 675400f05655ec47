"""Secret lookup for the Firebase API key and sign-in credentials."""

from __future__ import annotations

import os
from abc import ABC, abstractmethod
from configparser import ConfigParser
from pathlib import Path
from typing import Iterable, Mapping

ENV_PREFIX = "GALLERYBOARD_"


class SecretNotFoundError(KeyError):
    """Raised when a secret cannot be resolved."""


class SecretProvider(ABC):
    """Abstract secret lookup contract.

    Keys are dotted ``section.option`` names such as ``firebase.api_key``.
    """

    @abstractmethod
    def get_secret(self, key: str) -> str:
        """Return the secret associated with ``key``."""

    def find_secret(self, key: str) -> str | None:
        try:
            return self.get_secret(key)
        except SecretNotFoundError:
            return None


class EnvSecretProvider(SecretProvider):
    """Reads ``firebase.api_key`` from ``GALLERYBOARD_FIREBASE_API_KEY``."""

    def __init__(self, prefix: str = ENV_PREFIX, env: Mapping[str, str] | None = None) -> None:
        self._env = env if env is not None else os.environ
        self._prefix = prefix

    def env_name(self, key: str) -> str:
        return f"{self._prefix}{key}".upper().replace(".", "_")

    def get_secret(self, key: str) -> str:
        value = self._env.get(self.env_name(key))
        if not value:
            raise SecretNotFoundError(key)
        return value


class FileSecretProvider(SecretProvider):
    """Loads secrets from an INI file with ``[firebase]`` and ``[auth]`` sections."""

    def __init__(self, path: Path) -> None:
        self._path = path
        self._parser = ConfigParser()
        if path.exists():
            self._parser.read(path, encoding="utf-8")

    def get_secret(self, key: str) -> str:
        section, _, option = key.partition(".")
        if not section or not option:
            raise SecretNotFoundError(key)
        if self._parser.has_option(section, option):
            value = self._parser.get(section, option).strip()
            if value:
                return value
        raise SecretNotFoundError(key)


class MappingSecretProvider(SecretProvider):
    """Wraps a plain dictionary; used for tests and config-file values."""

    def __init__(self, mapping: Mapping[str, str | None]) -> None:
        self._mapping = mapping

    def get_secret(self, key: str) -> str:
        value = self._mapping.get(key)
        if not value:
            raise SecretNotFoundError(key)
        return value


class ChainedSecretProvider(SecretProvider):
    """Tries multiple providers until one returns a secret."""

    def __init__(self, providers: Iterable[SecretProvider]) -> None:
        self._providers = tuple(providers)

    def get_secret(self, key: str) -> str:
        for provider in self._providers:
            try:
                return provider.get_secret(key)
            except SecretNotFoundError:
                continue
        raise SecretNotFoundError(key)


def build_secret_provider(
    secrets_file: Path, *, overrides: Mapping[str, str | None] | None = None
) -> ChainedSecretProvider:
    """Environment first, then explicit overrides, then the secrets file."""
    providers: list[SecretProvider] = [EnvSecretProvider()]
    if overrides:
        providers.append(MappingSecretProvider(overrides))
    providers.append(FileSecretProvider(secrets_file))
    return ChainedSecretProvider(providers)


__all__ = [
    "ChainedSecretProvider",
    "EnvSecretProvider",
    "FileSecretProvider",
    "MappingSecretProvider",
    "SecretNotFoundError",
    "SecretProvider",
    "build_secret_provider",
]
