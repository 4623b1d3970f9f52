from __future__ import annotations

import json
import os
import stat
from dataclasses import asdict, dataclass, replace
from pathlib import Path
from typing import Any

from platformdirs import user_config_path

from .errors import StorageError

DEFAULT_BASE_URL = "https://rest.jp.stork-oracle.network"
DEFAULT_TIMEOUT_S = 30.0
DEFAULT_AUTH_SCHEME = "Basic"


@dataclass(frozen=True)
class Config:
    auth_token: str | None = None
    base_url: str = DEFAULT_BASE_URL
    timeout_s: float = DEFAULT_TIMEOUT_S
    auth_scheme: str = DEFAULT_AUTH_SCHEME  # sent as "Authorization: <scheme> <token>"


def config_path(path_override: str | Path | None = None) -> Path:
    if path_override is not None:
        return Path(path_override).expanduser()
    if env := os.getenv("ASSET_CONF_CONFIG_PATH"):
        return Path(env).expanduser()
    return user_config_path("asset_conf") / "config.json"


def load_config(path_override: str | Path | None = None) -> Config:
    """
    Read the config file. A missing file or a non-object document yields defaults; an
    unreadable or malformed file raises StorageError.
    """
    path = config_path(path_override)
    try:
        if not path.exists():
            return Config()
        raw = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise StorageError(f"Config file {path} is not valid JSON: {e}") from e
    except OSError as e:
        raise StorageError(f"Failed to read config {path}: {e}") from e
    if not isinstance(raw, dict):
        return Config()

    allowed = {f.name for f in Config.__dataclass_fields__.values()}  # type: ignore[attr-defined]
    filtered: dict[str, Any] = {k: v for k, v in raw.items() if k in allowed and v is not None}
    return Config(**filtered)  # type: ignore[arg-type]


def write_text_atomic(path: Path, content: str) -> None:
    """Write via a sibling .tmp file and rename; the .tmp file never outlives a failed write."""
    tmp = path.with_suffix(path.suffix + ".tmp")
    try:
        tmp.write_text(content, encoding="utf-8")
        tmp.replace(path)
    except OSError:
        tmp.unlink(missing_ok=True)
        raise


def save_config(cfg: Config, path_override: str | Path | None = None) -> Path:
    path = config_path(path_override)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        write_text_atomic(path, json.dumps(asdict(cfg), indent=2, sort_keys=True) + "\n")
    except OSError as e:
        raise StorageError(f"Failed to write config {path}: {e}") from e

    # Token file: owner read/write only.
    try:
        os.chmod(path, stat.S_IRUSR | stat.S_IWUSR)
    except OSError:
        pass

    return path


def merge_overrides(
    base: Config,
    *,
    token: str | None = None,
    base_url: str | None = None,
    timeout_s: float | None = None,
) -> Config:
    # Env overrides config; explicit arguments override both.
    token = token or os.getenv("ASSET_CONF_TOKEN") or base.auth_token
    base_url = base_url or os.getenv("ASSET_CONF_BASE_URL") or base.base_url
    raw_timeout = timeout_s or os.getenv("ASSET_CONF_TIMEOUT_S") or base.timeout_s
    try:
        timeout_f = float(raw_timeout)
    except (TypeError, ValueError):
        timeout_f = base.timeout_s
    return replace(base, auth_token=token, base_url=base_url, timeout_s=timeout_f)


def redact_token(token: str | None) -> str | None:
    if not token:
        return token
    if len(token) <= 10:
        return token[:2] + "..." + token[-2:]
    return token[:6] + "..." + token[-4:]
