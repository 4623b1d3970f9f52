import io
import json
import os
import tempfile
import unittest
from pathlib import Path
from unittest.mock import patch

import httpx
import yaml

from asset_conf.cli import _format_api_error, build_parser, main
from asset_conf.encoding import encode_asset_id
from asset_conf.errors import ApiError

from _fakes import CATALOG, catalog_handler, make_client


class _CliTestCase(unittest.TestCase):
    def setUp(self) -> None:
        self._td = tempfile.TemporaryDirectory()
        self.dir = Path(self._td.name)
        self.config = self.dir / "config.json"
        env = patch.dict(os.environ, {"ASSET_CONF_CONFIG_PATH": str(self.config)})
        env.start()
        self.addCleanup(env.stop)
        for key in ("ASSET_CONF_TOKEN", "ASSET_CONF_BASE_URL", "ASSET_CONF_TIMEOUT_S"):
            os.environ.pop(key, None)

    def tearDown(self) -> None:
        self._td.cleanup()

    def run_cli(self, argv: list[str], handler=None) -> tuple[int, str, str]:
        handler = handler or catalog_handler()
        with (
            patch("asset_conf.cli._client_from_cfg", side_effect=lambda cfg: make_client(handler, token=cfg.auth_token)),
            patch("sys.stdout", new=io.StringIO()) as stdout,
            patch("sys.stderr", new=io.StringIO()) as stderr,
        ):
            rc = main(argv)
        return rc, stdout.getvalue(), stderr.getvalue()


class TestTokenCommands(_CliTestCase):
    def test_set_token_then_get_token(self) -> None:
        rc, out, _ = self.run_cli(["set-token", "T"])
        self.assertEqual(rc, 0)
        self.assertIn("updated successfully", out)

        rc, out, _ = self.run_cli(["get-token"])
        self.assertEqual(rc, 0)
        self.assertEqual(out, "T\n")

    def test_set_token_keeps_token_verbatim(self) -> None:
        self.run_cli(["set-token", " T "])
        rc, out, _ = self.run_cli(["get-token"])
        self.assertEqual(rc, 0)
        self.assertEqual(out, " T \n")

    def test_get_token_redacted(self) -> None:
        self.run_cli(["set-token", "abcdefghijklmnop"])
        rc, out, _ = self.run_cli(["get-token", "--redacted"])
        self.assertEqual(rc, 0)
        self.assertEqual(out, "abcdef...mnop\n")

    def test_get_token_when_unset(self) -> None:
        rc, out, err = self.run_cli(["get-token"])
        self.assertEqual(rc, 1)
        self.assertEqual(out, "")
        self.assertIn("No authentication token set", err)

    def test_clear_token(self) -> None:
        self.run_cli(["set-token", "T"])
        rc, out, _ = self.run_cli(["clear-token"])
        self.assertEqual(rc, 0)
        rc, _, _ = self.run_cli(["get-token"])
        self.assertEqual(rc, 1)

    def test_config_flag_overrides_env_path(self) -> None:
        other = self.dir / "other.json"
        self.run_cli(["--config", str(other), "set-token", "X"])
        self.assertEqual(json.loads(other.read_text(encoding="utf-8"))["auth_token"], "X")
        self.assertFalse(self.config.exists())


class TestQueryCommands(_CliTestCase):
    def setUp(self) -> None:
        super().setUp()
        self.run_cli(["set-token", "tok_123"])

    def test_get_assets_lists_catalog(self) -> None:
        rc, out, _ = self.run_cli(["get-assets"])
        self.assertEqual(rc, 0)
        lines = out.splitlines()
        self.assertEqual(lines[0], f"Total Assets: {len(CATALOG)}")
        self.assertEqual(lines[1], "Assets:")
        self.assertEqual(lines[2], "  BTCUSD")

    def test_get_assets_with_encoded(self) -> None:
        rc, out, _ = self.run_cli(["get-assets", "-e"])
        self.assertEqual(rc, 0)
        self.assertIn(encode_asset_id("ETHUSD"), out)

    def test_get_assets_json(self) -> None:
        rc, out, _ = self.run_cli(["get-assets", "--json"])
        self.assertEqual(rc, 0)
        self.assertEqual(json.loads(out), CATALOG)

    def test_uses_stored_token(self) -> None:
        seen: list[httpx.Request] = []
        self.run_cli(["get-assets"], handler=catalog_handler(seen=seen))
        self.assertEqual(seen[0].headers.get("authorization"), "Basic tok_123")

    def test_token_flag_overrides_stored_token(self) -> None:
        seen: list[httpx.Request] = []
        self.run_cli(["--token", "cli_tok", "get-assets"], handler=catalog_handler(seen=seen))
        self.assertEqual(seen[0].headers.get("authorization"), "Basic cli_tok")

    def test_get_encoded(self) -> None:
        rc, out, _ = self.run_cli(["get-encoded", "-a", "BTCUSD,ETHUSD", "--json"])
        self.assertEqual(rc, 0)
        self.assertEqual(
            json.loads(out),
            {"BTCUSD": encode_asset_id("BTCUSD"), "ETHUSD": encode_asset_id("ETHUSD")},
        )

    def test_get_encoded_unknown_id(self) -> None:
        rc, out, err = self.run_cli(["get-encoded", "-a", "UNKNOWNID"])
        self.assertEqual(rc, 1)
        self.assertIn("UNKNOWNID", err)
        self.assertIn("not found", err)

    def test_get_encoded_partial_prints_known_ids(self) -> None:
        rc, out, err = self.run_cli(["get-encoded", "-a", "BTCUSD,UNKNOWNID"])
        self.assertEqual(rc, 1)
        self.assertIn(encode_asset_id("BTCUSD"), out)
        self.assertIn("UNKNOWNID", err)

    def test_check_all_available(self) -> None:
        rc, out, err = self.run_cli(["check", "BTCUSD,ETHUSD"])
        self.assertEqual(rc, 0)
        self.assertEqual(out.splitlines(), ["BTCUSD  available", "ETHUSD  available"])
        self.assertEqual(err, "")

    def test_check_reports_unavailable(self) -> None:
        rc, out, err = self.run_cli(["check", "BTCUSD", "NOPE", "--json"])
        self.assertEqual(rc, 1)
        self.assertEqual(json.loads(out), {"BTCUSD": True, "NOPE": False})
        self.assertIn("error: 1 asset(s) unavailable: NOPE", err)

    def test_server_error_exit_code(self) -> None:
        rc, _, err = self.run_cli(["get-assets"], handler=lambda request: httpx.Response(503, json={"message": "down"}))
        self.assertEqual(rc, 1)
        self.assertIn("error: Server returned status 503: down", err)

    def test_rejected_token_exit_code(self) -> None:
        rc, _, err = self.run_cli(["get-assets"], handler=lambda request: httpx.Response(401))
        self.assertEqual(rc, 1)
        self.assertIn("rejected", err)

    def test_network_failure_exit_code(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        rc, _, err = self.run_cli(["get-assets"], handler=handler)
        self.assertEqual(rc, 1)
        self.assertIn("Error making request", err)


class TestQueryWithoutToken(_CliTestCase):
    def test_get_assets_requires_token(self) -> None:
        seen: list[httpx.Request] = []
        rc, _, err = self.run_cli(["get-assets"], handler=catalog_handler(seen=seen))
        self.assertEqual(rc, 1)
        self.assertIn("set-token", err)
        self.assertEqual(seen, [])


class TestGenConfig(_CliTestCase):
    def setUp(self) -> None:
        super().setUp()
        self.run_cli(["set-token", "tok_123"])

    def test_explicit_assets_with_defaults(self) -> None:
        out_path = self.dir / "config.yaml"
        rc, out, _ = self.run_cli(["gen-config", "-a", "BTCUSD,ETHUSD,SUIUSD", "-o", str(out_path)])
        self.assertEqual(rc, 0)
        self.assertIn("3 assets", out)

        doc = yaml.safe_load(out_path.read_text(encoding="utf-8"))
        self.assertEqual(list(doc["assets"]), ["BTCUSD", "ETHUSD", "SUIUSD"])
        for entry in doc["assets"].values():
            self.assertEqual(entry["fallback_period_sec"], 60)
            self.assertEqual(entry["percent_change_threshold"], 1.0)

    def test_random_and_explicit_union(self) -> None:
        out_path = self.dir / "config.yaml"
        rc, _, _ = self.run_cli(
            ["gen", "-a", "BTCUSD", "-r", "3", "-f", "30", "-p", "2.5", "--seed", "9", "-o", str(out_path)]
        )
        self.assertEqual(rc, 0)
        doc = yaml.safe_load(out_path.read_text(encoding="utf-8"))
        keys = list(doc["assets"])
        self.assertEqual(len(keys), 4)
        self.assertEqual(len(set(keys)), 4)
        self.assertEqual(keys[0], "BTCUSD")
        self.assertEqual(doc["assets"]["BTCUSD"]["fallback_period_sec"], 30)
        self.assertEqual(doc["assets"]["BTCUSD"]["percent_change_threshold"], 2.5)

    def test_same_seed_same_output(self) -> None:
        a = self.dir / "a.yaml"
        b = self.dir / "b.yaml"
        self.run_cli(["gen-config", "-r", "4", "--seed", "3", "-o", str(a)])
        self.run_cli(["gen-config", "-r", "4", "--seed", "3", "-o", str(b)])
        self.assertEqual(a.read_text(encoding="utf-8"), b.read_text(encoding="utf-8"))

    def test_missing_assets_and_random(self) -> None:
        seen: list[httpx.Request] = []
        rc, _, err = self.run_cli(["gen-config", "-o", str(self.dir / "c.yaml")], handler=catalog_handler(seen=seen))
        self.assertEqual(rc, 1)
        self.assertIn("Either -a or a positive -r", err)
        self.assertEqual(seen, [])

    def test_missing_output(self) -> None:
        rc, _, err = self.run_cli(["gen-config", "-a", "BTCUSD"])
        self.assertEqual(rc, 1)
        self.assertIn("Output path is required", err)

    def test_missing_output_reported_before_token_check(self) -> None:
        self.run_cli(["clear-token"])
        rc, _, err = self.run_cli(["gen-config", "-r", "2"])
        self.assertEqual(rc, 1)
        self.assertIn("Output path is required", err)

    def test_random_count_larger_than_catalog(self) -> None:
        rc, _, err = self.run_cli(["gen-config", "-r", "50", "-o", str(self.dir / "c.yaml")])
        self.assertEqual(rc, 1)
        self.assertIn("Requested 50 random assets but only 7 are available", err)

    def test_unknown_asset(self) -> None:
        rc, _, err = self.run_cli(["gen-config", "-a", "BTCUSD,NOPE", "-o", str(self.dir / "c.yaml")])
        self.assertEqual(rc, 1)
        self.assertIn("'NOPE'", err)


class TestParser(unittest.TestCase):
    def test_gen_config_aliases(self) -> None:
        for alias in ("gen-config", "gen", "generate", "gen-conf", "generate-config"):
            args = build_parser().parse_args([alias, "-r", "2", "-o", "x.yaml"])
            self.assertEqual(args.random, 2)

    def test_version(self) -> None:
        with patch("sys.stdout", new=io.StringIO()) as stdout:
            with self.assertRaises(SystemExit) as ctx:
                build_parser().parse_args(["--version"])
        self.assertEqual(ctx.exception.code, 0)
        self.assertIn("asset-conf", stdout.getvalue())

    def test_format_api_error_plain_body(self) -> None:
        self.assertEqual(_format_api_error(ApiError(500, "boom")), "Server returned status 500: boom")
        self.assertEqual(_format_api_error(ApiError(502, "")), "Server returned status 502")


if __name__ == "__main__":
    unittest.main()
