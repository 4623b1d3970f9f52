from __future__ import annotations

from dataclasses import replace
from pathlib import Path
from typing import Protocol

from .config import load_config, save_config
from .errors import InvalidArgumentError, NotConfiguredError

SET_TOKEN_HINT = "Set token with:\n\n   asset-conf set-token <token>"


class CredentialStore(Protocol):
    def load(self) -> str | None:
        ...

    def save(self, token: str | None) -> None:
        ...


class FileCredentialStore:
    """
    Keeps the token in the JSON config file, leaving the other config fields untouched.
    """

    def __init__(self, path_override: str | Path | None = None) -> None:
        self._path_override = path_override

    def load(self) -> str | None:
        return load_config(self._path_override).auth_token

    def save(self, token: str | None) -> None:
        cfg = load_config(self._path_override)
        save_config(replace(cfg, auth_token=token), self._path_override)


class MemoryCredentialStore:
    def __init__(self, token: str | None = None) -> None:
        self.token = token

    def load(self) -> str | None:
        return self.token

    def save(self, token: str | None) -> None:
        self.token = token


def set_token(store: CredentialStore, token: str) -> None:
    # Stored as given; only a blank token is refused.
    if not token.strip():
        raise InvalidArgumentError("Token must not be empty.")
    store.save(token)


def get_token(store: CredentialStore) -> str:
    token = store.load()
    if not token:
        raise NotConfiguredError(f"No authentication token set. {SET_TOKEN_HINT}")
    return token


def clear_token(store: CredentialStore) -> None:
    store.save(None)
