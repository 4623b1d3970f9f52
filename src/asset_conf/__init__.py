from ._version import __version__
from .client import Asset, AssetClient
from .errors import (
    ApiError,
    AssetConfError,
    AssetNotFoundError,
    AuthError,
    InvalidArgumentError,
    NetworkError,
    NotConfiguredError,
    StorageError,
)
from .generator import AssetConfigEntry, GenerateConfigRequest, GeneratedConfig, generate

__all__ = [
    "__version__",
    "ApiError",
    "Asset",
    "AssetClient",
    "AssetConfError",
    "AssetConfigEntry",
    "AssetNotFoundError",
    "AuthError",
    "GenerateConfigRequest",
    "GeneratedConfig",
    "InvalidArgumentError",
    "NetworkError",
    "NotConfiguredError",
    "StorageError",
    "generate",
]
