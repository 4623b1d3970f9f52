from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Iterable

import httpx

from .config import DEFAULT_AUTH_SCHEME, DEFAULT_BASE_URL, DEFAULT_TIMEOUT_S
from .credentials import SET_TOKEN_HINT
from .encoding import encode_asset_id, parse_asset_ids
from .errors import ApiError, AssetNotFoundError, AuthError, NetworkError

log = logging.getLogger(__name__)

ASSETS_PATH = "/v1/prices/assets"


@dataclass(frozen=True)
class Asset:
    asset_id: str

    @property
    def encoded_asset_id(self) -> str:
        return encode_asset_id(self.asset_id)


class AssetClient:
    """
    Client for the oracle REST API. One instance serves one CLI invocation: the asset
    catalog is fetched at most once unless a refresh is requested.
    """

    def __init__(
        self,
        *,
        base_url: str = DEFAULT_BASE_URL,
        token: str | None = None,
        timeout_s: float = DEFAULT_TIMEOUT_S,
        auth_scheme: str = DEFAULT_AUTH_SCHEME,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.timeout_s = timeout_s
        self.auth_scheme = auth_scheme

        self._http = httpx.Client(timeout=timeout_s, follow_redirects=True)
        self._catalog: list[Asset] | None = None

    def close(self) -> None:
        self._http.close()

    def __enter__(self) -> "AssetClient":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def request(self, *, method: str, path: str, params: dict[str, Any] | None = None) -> httpx.Response:
        if not self.token:
            raise AuthError(f"No authentication token set. {SET_TOKEN_HINT}")
        if not path.startswith("/"):
            path = "/" + path
        url = f"{self.base_url}{path}"
        headers = {"Authorization": f"{self.auth_scheme} {self.token}".strip()}

        log.debug("%s %s", method.upper(), url)
        try:
            resp = self._http.request(method.upper(), url, params=params, headers=headers)
        except httpx.HTTPError as e:
            raise NetworkError(f"Error making request: {e}") from e
        log.debug("%s %s -> %s", method.upper(), url, resp.status_code)

        if resp.status_code in (401, 403):
            raise AuthError(f"HTTP {resp.status_code}: the server rejected the authentication token.")
        if resp.status_code >= 400:
            raise ApiError(resp.status_code, resp.text)
        return resp

    def list_assets(self, *, refresh: bool = False) -> list[Asset]:
        if self._catalog is not None and not refresh:
            return list(self._catalog)

        resp = self.request(method="GET", path=ASSETS_PATH)
        try:
            payload = resp.json()
        except json.JSONDecodeError as e:
            raise ApiError(resp.status_code, "Invalid response format from server (not JSON)") from e
        data = payload.get("data") if isinstance(payload, dict) else None
        if not isinstance(data, list):
            raise ApiError(resp.status_code, "Invalid response format from server (missing data list)")

        self._catalog = [Asset(item) for item in data if isinstance(item, str)]
        log.info("Fetched %d assets", len(self._catalog))
        return list(self._catalog)

    def asset_ids(self) -> list[str]:
        return [a.asset_id for a in self.list_assets()]

    def check(self, ids: Iterable[str]) -> dict[str, bool]:
        known = set(self.asset_ids())
        return {asset_id: asset_id in known for asset_id in parse_asset_ids(list(ids))}

    def get_encoded(self, ids: Iterable[str], *, strict: bool = True) -> dict[str, str | None]:
        """
        Map each requested id to its encoded asset id, in request order.

        Unknown ids raise AssetNotFoundError (naming all of them) when strict; otherwise
        they map to None so callers can report per-id status.
        """
        availability = self.check(ids)
        missing = [asset_id for asset_id, ok in availability.items() if not ok]
        if missing and strict:
            raise AssetNotFoundError(missing)
        return {
            asset_id: encode_asset_id(asset_id) if ok else None
            for asset_id, ok in availability.items()
        }
