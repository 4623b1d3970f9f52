from __future__ import annotations

import logging
import random
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Protocol, Sequence

import yaml

from .client import AssetClient
from .config import write_text_atomic
from .encoding import parse_asset_ids
from .errors import AssetNotFoundError, InvalidArgumentError, StorageError

log = logging.getLogger(__name__)

DEFAULT_FALLBACK_PERIOD_SEC = 60
DEFAULT_PERCENT_CHANGE_THRESHOLD = 1.0
YAML_SUFFIXES = (".yaml", ".yml")


class RandomSource(Protocol):
    def sample(self, population: Sequence[str], k: int) -> list[str]:
        ...


@dataclass(frozen=True)
class AssetConfigEntry:
    asset_id: str
    encoded_asset_id: str
    fallback_period_sec: int = DEFAULT_FALLBACK_PERIOD_SEC
    percent_change_threshold: float = DEFAULT_PERCENT_CHANGE_THRESHOLD

    def to_dict(self) -> dict[str, Any]:
        return {
            "asset_id": self.asset_id,
            "fallback_period_sec": self.fallback_period_sec,
            "percent_change_threshold": self.percent_change_threshold,
            "encoded_asset_id": self.encoded_asset_id,
        }


@dataclass(frozen=True)
class GenerateConfigRequest:
    output_path: str
    explicit_ids: tuple[str, ...] = ()
    random_count: int | None = None
    fallback_period_sec: int | None = None
    percent_change_threshold: float | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "explicit_ids", parse_asset_ids(self.explicit_ids))


@dataclass(frozen=True)
class GeneratedConfig:
    path: Path
    entries: tuple[AssetConfigEntry, ...]

    @property
    def asset_ids(self) -> list[str]:
        return [e.asset_id for e in self.entries]


def validate_request(request: GenerateConfigRequest) -> Path:
    if not request.output_path or not request.output_path.strip():
        raise InvalidArgumentError("Output path is required (-o).")
    path = Path(request.output_path).expanduser()
    if path.suffix.lower() not in YAML_SUFFIXES:
        raise InvalidArgumentError("Output file must have .yaml or .yml extension")
    if not path.parent.exists():
        raise InvalidArgumentError(f"Output directory does not exist: {path.parent}")

    # -r 0 alongside -a just means "no random assets".
    if request.random_count is not None and request.random_count < 0:
        raise InvalidArgumentError("Number of random assets must not be negative")
    if not request.explicit_ids and not request.random_count:
        raise InvalidArgumentError("Either -a or a positive -r must be provided")

    if request.fallback_period_sec is not None:
        if isinstance(request.fallback_period_sec, bool) or not isinstance(request.fallback_period_sec, int):
            raise InvalidArgumentError("Fallback period must be a whole number of seconds")
        if request.fallback_period_sec < 0:
            raise InvalidArgumentError("Fallback period must not be negative")
    if request.percent_change_threshold is not None and request.percent_change_threshold < 0:
        raise InvalidArgumentError("Percent change threshold must not be negative")
    return path


def resolve_asset_ids(
    request: GenerateConfigRequest,
    catalog: Sequence[str],
    rng: RandomSource,
) -> list[str]:
    """
    Explicit ids in the order given, then `random_count` distinct ids drawn from the rest of the catalog.
    """
    known = set(catalog)
    unknown = [a for a in request.explicit_ids if a not in known]
    if unknown:
        raise AssetNotFoundError(unknown)

    resolved = list(request.explicit_ids)
    if request.random_count:
        explicit = set(request.explicit_ids)
        population = [a for a in catalog if a not in explicit]
        if request.random_count > len(population):
            raise InvalidArgumentError(
                f"Requested {request.random_count} random assets but only {len(population)} are available"
            )
        sampled = rng.sample(population, request.random_count)
        log.debug("Sampled %d random assets: %s", len(sampled), ", ".join(sampled))
        resolved.extend(sampled)
    return resolved


def build_entries(request: GenerateConfigRequest, encoded: dict[str, str | None]) -> tuple[AssetConfigEntry, ...]:
    fallback = request.fallback_period_sec
    percent = request.percent_change_threshold
    return tuple(
        AssetConfigEntry(
            asset_id=asset_id,
            encoded_asset_id=str(encoded_id),
            fallback_period_sec=DEFAULT_FALLBACK_PERIOD_SEC if fallback is None else fallback,
            percent_change_threshold=DEFAULT_PERCENT_CHANGE_THRESHOLD if percent is None else float(percent),
        )
        for asset_id, encoded_id in encoded.items()
    )


def render_config(entries: Sequence[AssetConfigEntry]) -> str:
    doc = {"assets": {e.asset_id: e.to_dict() for e in entries}}
    return yaml.safe_dump(doc, sort_keys=False, default_flow_style=False)


def write_config(path: Path, content: str) -> None:
    try:
        write_text_atomic(path, content)
    except OSError as e:
        raise StorageError(f"Error writing file {path}: {e}") from e


def generate(
    request: GenerateConfigRequest,
    client: AssetClient,
    rng: RandomSource | None = None,
) -> GeneratedConfig:
    path = validate_request(request)
    catalog = client.asset_ids()
    resolved = resolve_asset_ids(request, catalog, rng or random.Random())

    encoded = client.get_encoded(resolved)
    entries = build_entries(request, encoded)
    write_config(path, render_config(entries))
    log.info("Wrote %d assets to %s", len(entries), path)
    return GeneratedConfig(path=path, entries=entries)

