"""Tests for the command-line entry point."""

import asyncio

import pytest

from spit.main import build_parser, run
from spit.settings import Settings


class TestParser:
    """Tests for argument parsing."""

    def test_scan_defaults(self):
        args = build_parser(Settings()).parse_args(["scan", "--url", "https://example.com/openapi.json"])
        assert args.command == "scan"
        assert args.url == "https://example.com/openapi.json"
        assert args.port == 8080
        assert args.host == "127.0.0.1"
        assert args.delay is None
        assert args.config is None

    def test_file_with_options(self):
        args = build_parser(Settings()).parse_args(
            [
                "-vv", "file", "--path", "spec.yaml",
                "-p", "9000", "-H", "0.0.0.0", "-d", "150", "-C", "mock.yml",
            ]
        )
        assert args.command == "file"
        assert args.path == "spec.yaml"
        assert (args.port, args.host, args.delay, args.config) == (9000, "0.0.0.0", 150, "mock.yml")
        assert args.verbose == 2

    def test_subcommand_required(self):
        with pytest.raises(SystemExit):
            build_parser(Settings()).parse_args([])


def test_run_exits_with_error_for_missing_spec(tmp_path):
    assert asyncio.run(run(["file", "--path", str(tmp_path / "missing.json")])) == 1


def test_run_exits_with_error_for_bad_config(tmp_path):
    spec = tmp_path / "openapi.json"
    spec.write_text('{"openapi": "3.0.0", "paths": {}}')
    config = tmp_path / "mock.json"
    config.write_text('{"delay": -5}')
    assert asyncio.run(run(["file", "--path", str(spec), "--config", str(config)])) == 1


def test_run_exits_with_error_for_undecodable_spec(tmp_path):
    spec = tmp_path / "openapi.yaml"
    spec.write_bytes(b"openapi: \xff\xfe\n")
    assert asyncio.run(run(["file", "--path", str(spec)])) == 1
