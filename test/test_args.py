import pytest
import sys
from unittest.mock import patch
from buildkitemetrics.args import get_arg_parser, ArgumentParser, convert, NoneType
from buildkitemetrics.logger import add_args as logging_add_args
from buildkitemetrics.__main__ import add_args, main, parse_listen_address


def test_args():
    arg_parser = get_arg_parser()
    add_args(arg_parser)
    logging_add_args(arg_parser)
    arg_parser.parse_args([])
    assert ArgumentParser.args.listen_address == ":9101"
    assert ArgumentParser.args.metrics_path == "/metrics"
    assert ArgumentParser.args.buildkite_url == "https://graphql.buildkite.com/v1"
    assert ArgumentParser.args.buildkite_organization == ""
    assert ArgumentParser.args.buildkite_token == ""
    assert ArgumentParser.args.buildkite_timeout == 10.0
    assert ArgumentParser.args.verbose is False
    assert ArgumentParser.args.does_not_exist is None


def test_env_args(monkeypatch):
    monkeypatch.setenv("BUILDKITEMETRICS_BUILDKITE_ORGANIZATION", "acme")
    monkeypatch.setenv("BUILDKITEMETRICS_BUILDKITE_TOKEN", "secret")
    monkeypatch.setenv("BUILDKITEMETRICS_BUILDKITE_TIMEOUT", "2.5")
    monkeypatch.setenv("BUILDKITEMETRICS_VERBOSE", "true")
    arg_parser = get_arg_parser()
    add_args(arg_parser)
    logging_add_args(arg_parser)
    arg_parser.parse_args([])
    assert ArgumentParser.args.buildkite_organization == "acme"
    assert ArgumentParser.args.buildkite_token == "secret"
    assert ArgumentParser.args.buildkite_timeout == 2.5
    assert ArgumentParser.args.verbose is True

    arg_parser = get_arg_parser()
    add_args(arg_parser)
    arg_parser.parse_args(["--buildkite-organization", "other"])
    assert ArgumentParser.args.buildkite_organization == "other"


def test_convert() -> None:
    assert convert(None, NoneType) is None
    assert convert("3", int) == 3
    assert convert("3.4", float) == 3.4
    assert convert("true", bool) is True
    assert convert("false", bool) is False
    assert convert("no_int", int) == "no_int"


def test_parse_listen_address() -> None:
    assert parse_listen_address(":9101") == ("::", 9101)
    assert parse_listen_address("127.0.0.1:8080") == ("127.0.0.1", 8080)
    assert parse_listen_address("[::1]:9101") == ("::1", 9101)
    for invalid in ("9101", "localhost:", "localhost:http", ":0", ":70000", "::1", "::1:9101"):
        with pytest.raises(ValueError):
            parse_listen_address(invalid)


@pytest.mark.parametrize(
    "argv",
    [
        ["--buildkite-token", "secret"],
        ["--buildkite-organization", "acme"],
        ["--buildkite-organization", "acme", "--buildkite-token", "secret", "--buildkite-timeout", "0"],
        ["--buildkite-organization", "acme", "--buildkite-token", "secret", "--buildkite-timeout", "nan"],
        ["--buildkite-organization", "acme", "--buildkite-token", "secret", "--listen-address", "9101"],
        ["--buildkite-organization", "acme", "--buildkite-token", "secret", "--listen-address", "::1"],
    ],
)
def test_main_invalid_config(monkeypatch, argv):
    for name in ("BUILDKITE_ORGANIZATION", "BUILDKITE_TOKEN", "BUILDKITE_TIMEOUT", "LISTEN_ADDRESS"):
        monkeypatch.delenv(f"BUILDKITEMETRICS_{name}", raising=False)
    monkeypatch.setattr(sys, "argv", ["buildkitemetrics"] + argv)
    with patch("buildkitemetrics.__main__.setup_logger"), patch("buildkitemetrics.__main__.signal"), patch(
        "buildkitemetrics.__main__.WebServer"
    ) as web_server:
        with pytest.raises(SystemExit) as exit_info:
            main()
    assert exit_info.value.code == 1
    web_server.assert_not_called()
