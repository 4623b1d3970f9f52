from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable


class AssetConfError(RuntimeError):
    pass


class InvalidArgumentError(AssetConfError):
    pass


class NotConfiguredError(AssetConfError):
    pass


class AuthError(AssetConfError):
    pass


class NetworkError(AssetConfError):
    pass


class StorageError(AssetConfError):
    """Local file could not be read or written."""


@dataclass(frozen=True)
class ApiError(AssetConfError):
    status_code: int
    body: str

    def __str__(self) -> str:
        return f"HTTP {self.status_code}: {self.body}"


class AssetNotFoundError(AssetConfError):
    def __init__(self, asset_ids: Iterable[str]) -> None:
        self.asset_ids = tuple(asset_ids)
        noun = "Asset" if len(self.asset_ids) == 1 else "Assets"
        joined = ", ".join(f"'{a}'" for a in self.asset_ids)
        super().__init__(f"{noun} {joined} not found in available assets")
