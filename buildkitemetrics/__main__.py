import sys
from buildkitemetrics.args import ArgumentParser, get_arg_parser
from buildkitemetrics.graphql import GraphQLClient
from buildkitemetrics.logger import log, setup_logger, add_args as logging_add_args
from buildkitemetrics.scraper import Scraper
from buildkitemetrics.web import WebApp, WebServer
from prometheus_client import CollectorRegistry
from signal import signal, SIGTERM, SIGINT
from threading import Event
from typing import Tuple


shutdown_event = Event()


def handler(sig, frame) -> None:
    log.info("Shutting down")
    shutdown_event.set()


def main() -> None:
    setup_logger("buildkitemetrics")
    signal(SIGINT, handler)
    signal(SIGTERM, handler)

    arg_parser = get_arg_parser()
    add_args(arg_parser)
    logging_add_args(arg_parser)
    arg_parser.parse_args()
    args = ArgumentParser.args

    if not args.buildkite_organization:
        log.fatal("--buildkite-organization is required")
        sys.exit(1)
    if not args.buildkite_token:
        log.fatal("--buildkite-token is required")
        sys.exit(1)
    if not args.buildkite_timeout > 0:
        log.fatal("--buildkite-timeout must be greater than zero")
        sys.exit(1)
    try:
        web_host, web_port = parse_listen_address(args.listen_address)
    except ValueError as e:
        log.fatal(e)
        sys.exit(1)

    client = GraphQLClient(args.buildkite_url, args.buildkite_token, timeout=args.buildkite_timeout)
    scraper = Scraper(client, args.buildkite_organization)
    registry = CollectorRegistry(auto_describe=True)
    registry.register(scraper)

    web_server = WebServer(
        WebApp(registry, metrics_path=args.metrics_path),
        web_host=web_host,
        web_port=web_port,
    )
    web_server.daemon = True
    web_server.start()
    shutdown_event.wait()
    web_server.shutdown()
    log.info("Shutdown complete")
    sys.exit(0)


def parse_listen_address(address: str) -> Tuple[str, int]:
    """Split a listen address like ":9101", "127.0.0.1:9101" or "[::1]:9101" into host and port.

    An empty host binds to all interfaces.
    """
    host, sep, port = address.rpartition(":")
    if not sep or not port.isdigit() or not 0 < int(port) < 65536:
        raise ValueError(f"Invalid listen address {address!r}")
    if host.startswith("[") and host.endswith("]"):
        host = host[1:-1]
    elif ":" in host:
        raise ValueError(f"Invalid listen address {address!r}, IPv6 hosts must be enclosed in brackets")
    host = host or "::"
    return host, int(port)


def add_args(arg_parser: ArgumentParser) -> None:
    arg_parser.add_argument(
        "--listen-address",
        help="Address to listen on for web interface and telemetry (default: :9101)",
        default=":9101",
        dest="listen_address",
        type=str,
    )
    arg_parser.add_argument(
        "--metrics-path",
        help="Path under which to expose metrics (default: /metrics)",
        default="/metrics",
        dest="metrics_path",
        type=str,
    )
    arg_parser.add_argument(
        "--buildkite-url",
        help="GraphQL URL on which to scrape Buildkite (default: https://graphql.buildkite.com/v1)",
        default="https://graphql.buildkite.com/v1",
        dest="buildkite_url",
        type=str,
    )
    arg_parser.add_argument(
        "--buildkite-organization",
        help="Buildkite organization to scrape",
        default="",
        dest="buildkite_organization",
        type=str,
    )
    arg_parser.add_argument(
        "--buildkite-token",
        help="Buildkite GraphQL API token",
        default="",
        dest="buildkite_token",
        type=str,
    )
    arg_parser.add_argument(
        "--buildkite-timeout",
        help="Timeout in seconds for each request to Buildkite (default: 10)",
        default=10.0,
        dest="buildkite_timeout",
        type=float,
    )


if __name__ == "__main__":
    main()
