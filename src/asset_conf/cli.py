from __future__ import annotations

import argparse
import json
import logging
import random
import sys
import textwrap

from ._version import __version__
from .client import AssetClient
from .config import Config, load_config, merge_overrides, redact_token
from .credentials import SET_TOKEN_HINT, FileCredentialStore, clear_token, get_token, set_token
from .encoding import parse_asset_ids
from .errors import ApiError, AssetConfError, AssetNotFoundError, NotConfiguredError
from .generator import GenerateConfigRequest, generate, validate_request

log = logging.getLogger(__name__)

GEN_CONFIG_ALIASES = ["gen", "generate", "gen-conf", "generate-config"]


def _print_table(rows: list[list[str]]) -> None:
    if not rows:
        return
    widths = [0] * len(rows[0])
    for r in rows:
        for i, c in enumerate(r):
            widths[i] = max(widths[i], len(c))
    for r in rows:
        line = "  ".join(c.ljust(widths[i]) for i, c in enumerate(r))
        print(line.rstrip())


def _print_json(obj) -> None:
    print(json.dumps(obj, indent=2))


def _configure_logging(verbosity: int) -> None:
    if verbosity <= 0:
        return
    level = logging.INFO if verbosity == 1 else logging.DEBUG
    logging.basicConfig(
        level=level,
        stream=sys.stderr,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    # httpx logs every request at INFO; keep it for -vv only.
    logging.getLogger("httpx").setLevel(level if verbosity > 1 else logging.WARNING)


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="asset-conf",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        description="A CLI tool for asset configuration.",
        epilog=textwrap.dedent(
            """\
            Environment variables:
              ASSET_CONF_CONFIG_PATH, ASSET_CONF_TOKEN, ASSET_CONF_BASE_URL, ASSET_CONF_TIMEOUT_S
            """
        ),
    )
    p.add_argument("--version", action="version", version=f"asset-conf {__version__}")
    p.add_argument("--config", dest="config_path", help="Config file path")
    p.add_argument("--base-url", help="API base URL")
    p.add_argument("--token", help="Auth token (overrides config/env)")
    p.add_argument("--timeout-s", type=float, help="HTTP timeout in seconds")
    p.add_argument("-v", "--verbose", action="count", default=0, help="Log to stderr (-vv for debug)")

    sub = p.add_subparsers(dest="cmd", required=True)

    set_tok = sub.add_parser("set-token", help="Set the authentication token")
    set_tok.add_argument("token", help="The authentication token to store")
    get_tok = sub.add_parser("get-token", help="Get the current authentication token")
    get_tok.add_argument("--redacted", action="store_true", help="Only show the start and end of the token")
    sub.add_parser("clear-token", help="Remove the stored authentication token")

    assets = sub.add_parser("get-assets", help="Get available assets")
    assets.add_argument("-e", "--encoded", action="store_true", help="Also print encoded asset ids")
    assets.add_argument("--json", action="store_true", help="Output JSON")

    enc = sub.add_parser("get-encoded", help="Get encoded asset ids")
    enc.add_argument("-a", "--assets", action="append", required=True, help="Comma-separated list of assets")
    enc.add_argument("--json", action="store_true", help="Output JSON")

    chk = sub.add_parser("check", help="Check whether assets are available")
    chk.add_argument("assets", nargs="+", help="Comma-separated list of assets")
    chk.add_argument("--json", action="store_true", help="Output JSON")

    gen = sub.add_parser("gen-config", aliases=GEN_CONFIG_ALIASES, help="Generate an asset configuration file")
    gen.add_argument("-o", "--output", help="Output file path (must end in .yaml or .yml)")
    gen.add_argument("-a", "--assets", action="append", help="Comma-separated list of assets to include")
    gen.add_argument("-r", "--random", type=int, help="Number of random assets to include")
    gen.add_argument("-f", "--fallback", type=int, help="Fallback period in seconds (default: 60)")
    gen.add_argument("-p", "--percent", type=float, help="Percent change threshold (default: 1.0)")
    gen.add_argument("--seed", type=int, help="Seed for random asset selection")

    return p


def _runtime_config(args: argparse.Namespace) -> Config:
    base = load_config(args.config_path)
    return merge_overrides(base, token=args.token, base_url=args.base_url, timeout_s=args.timeout_s)


def _client_from_cfg(cfg: Config) -> AssetClient:
    return AssetClient(
        base_url=cfg.base_url,
        token=cfg.auth_token,
        timeout_s=cfg.timeout_s,
        auth_scheme=cfg.auth_scheme,
    )


def _make_runtime_client(args: argparse.Namespace) -> AssetClient:
    cfg = _runtime_config(args)
    if not cfg.auth_token:
        raise NotConfiguredError(f"No authentication token set. {SET_TOKEN_HINT}")
    log.debug("Using token %s against %s", redact_token(cfg.auth_token), cfg.base_url)
    return _client_from_cfg(cfg)


def cmd_set_token(args: argparse.Namespace) -> int:
    set_token(FileCredentialStore(args.config_path), args.token)
    print("Authentication token updated successfully")
    return 0


def cmd_get_token(args: argparse.Namespace) -> int:
    token = get_token(FileCredentialStore(args.config_path))
    print(redact_token(token) if args.redacted else token)
    return 0


def cmd_clear_token(args: argparse.Namespace) -> int:
    clear_token(FileCredentialStore(args.config_path))
    print("Authentication token cleared")
    return 0


def cmd_get_assets(args: argparse.Namespace) -> int:
    client = _make_runtime_client(args)
    try:
        assets = client.list_assets()
    finally:
        client.close()

    if args.json:
        if args.encoded:
            _print_json([{"asset_id": a.asset_id, "encoded_asset_id": a.encoded_asset_id} for a in assets])
        else:
            _print_json([a.asset_id for a in assets])
        return 0

    print(f"Total Assets: {len(assets)}")
    print("Assets:")
    if args.encoded:
        _print_table([["", a.asset_id, a.encoded_asset_id] for a in assets])
    else:
        for a in assets:
            print(f"  {a.asset_id}")
    return 0


def cmd_get_encoded(args: argparse.Namespace) -> int:
    ids = parse_asset_ids(args.assets)
    client = _make_runtime_client(args)
    try:
        encoded = client.get_encoded(ids, strict=False)
    finally:
        client.close()

    found = {k: v for k, v in encoded.items() if v is not None}
    missing = [k for k, v in encoded.items() if v is None]
    if args.json:
        _print_json(found)
    else:
        _print_table([[k, v] for k, v in found.items()])
    if missing:
        raise AssetNotFoundError(missing)
    return 0


def cmd_check(args: argparse.Namespace) -> int:
    ids = parse_asset_ids(args.assets)
    client = _make_runtime_client(args)
    try:
        availability = client.check(ids)
    finally:
        client.close()

    if args.json:
        _print_json(availability)
    else:
        _print_table([[k, "available" if ok else "unavailable"] for k, ok in availability.items()])
    unavailable = [k for k, ok in availability.items() if not ok]
    if unavailable:
        print(f"error: {len(unavailable)} asset(s) unavailable: {', '.join(unavailable)}", file=sys.stderr)
        return 1
    return 0


def cmd_gen_config(args: argparse.Namespace) -> int:
    request = GenerateConfigRequest(
        output_path=args.output or "",
        explicit_ids=parse_asset_ids(args.assets),
        random_count=args.random,
        fallback_period_sec=args.fallback,
        percent_change_threshold=args.percent,
    )
    # Flag errors are reported before any token or network checks.
    validate_request(request)
    rng = random.Random(args.seed) if args.seed is not None else None
    client = _make_runtime_client(args)
    try:
        result = generate(request, client, rng)
    finally:
        client.close()
    print(f"Successfully generated config with {len(result.entries)} assets: {result.path}")
    return 0


def _api_error_detail(body: str) -> str | None:
    text = body.strip()
    if not text:
        return None
    try:
        obj = json.loads(text)
    except json.JSONDecodeError:
        return text
    if isinstance(obj, dict):
        for key in ("message", "detail", "error"):
            value = obj.get(key)
            if isinstance(value, str):
                value = value.strip()
                if value:
                    return value
    return text


def _format_api_error(err: ApiError) -> str:
    base = f"Server returned status {err.status_code}"
    detail = _api_error_detail(err.body)
    if detail:
        return f"{base}: {detail}"
    return base


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    _configure_logging(args.verbose)
    try:
        if args.cmd == "set-token":
            return cmd_set_token(args)
        if args.cmd == "get-token":
            return cmd_get_token(args)
        if args.cmd == "clear-token":
            return cmd_clear_token(args)
        if args.cmd == "get-assets":
            return cmd_get_assets(args)
        if args.cmd == "get-encoded":
            return cmd_get_encoded(args)
        if args.cmd == "check":
            return cmd_check(args)
        if args.cmd in ["gen-config", *GEN_CONFIG_ALIASES]:
            return cmd_gen_config(args)
        raise AssertionError("unreachable")
    except ApiError as e:
        print(f"error: {_format_api_error(e)}", file=sys.stderr)
        return 1
    except AssetConfError as e:
        print(f"error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
