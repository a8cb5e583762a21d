"""Prometheus exporter for Andrews & Arnold broadband lines via the CHAOS v2 API."""

from __future__ import annotations

import argparse
import logging
import os
import signal
import sys
import threading
from pathlib import Path
from typing import Mapping

from aaisp_exporter.chaos.client import ChaosClient
from aaisp_exporter.chaos.models import Credentials
from aaisp_exporter.common.config_loader import ExporterConfig, load_config_file, resolve_config
from aaisp_exporter.common.constants import (
    DEFAULT_LOG_LEVEL,
    ENV_CONTROL_LOGIN,
    ENV_CONTROL_PASSWORD,
    EXIT_FATAL,
    EXIT_SUCCESS,
    LOG_OUTPUTS,
)
from aaisp_exporter.common.errors import ConfigError
from aaisp_exporter.common.logging import build_logger, log_event
from aaisp_exporter.exporter.collector import BroadbandCollector, ScrapeStatus, build_registry
from aaisp_exporter.exporter.server import build_app, build_server

EPILOG = f"The environment variables {ENV_CONTROL_LOGIN} and {ENV_CONTROL_PASSWORD} must be set."


def parse_args(argv: list[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__, epilog=EPILOG)
    parser.add_argument("--listen", default=None, metavar="ADDRESS", help="listen address (default :8080)")
    parser.add_argument("--log.level", dest="log_level", default=None, metavar="LEVEL", help="log level (default info)")
    parser.add_argument(
        "--log.output",
        dest="log_output",
        default=None,
        choices=LOG_OUTPUTS,
        help="log output style (default json)",
    )
    parser.add_argument("--chaos.endpoint", dest="chaos_endpoint", default=None, metavar="URL", help="CHAOS API base URL")
    parser.add_argument("--config", default=None, metavar="PATH", help="optional YAML config file")
    return parser.parse_args(argv)


def load_credentials(environ: Mapping[str, str]) -> Credentials:
    control_login = environ.get(ENV_CONTROL_LOGIN, "")
    control_password = environ.get(ENV_CONTROL_PASSWORD, "")
    if not control_login and not control_password:
        raise ConfigError(f"{ENV_CONTROL_LOGIN} and {ENV_CONTROL_PASSWORD} must be set in the environment")
    if not control_login:
        raise ConfigError(f"{ENV_CONTROL_LOGIN} is not set")
    if not control_password:
        raise ConfigError(f"{ENV_CONTROL_PASSWORD} is not set")
    return Credentials(control_login=control_login, control_password=control_password)


def _fail(logger: logging.Logger, message: str, error_code: str) -> int:
    log_event(logger, message, level=logging.ERROR, event="STARTUP_FAIL", status="error", error_code=error_code)
    return EXIT_FATAL


def _serve(server, logger: logging.Logger) -> None:
    def handle_term(_signum, _frame):
        log_event(logger, "received SIGTERM, shutting down", event="SHUTDOWN")
        # shutdown() blocks until serve_forever returns, so it cannot run on this thread.
        threading.Thread(target=server.shutdown, daemon=True).start()

    previous = signal.signal(signal.SIGTERM, handle_term)
    try:
        server.serve_forever()
    except KeyboardInterrupt:
        log_event(logger, "interrupted, shutting down", event="SHUTDOWN")
    finally:
        signal.signal(signal.SIGTERM, previous)
        server.server_close()


def run_exporter(config: ExporterConfig, environ: Mapping[str, str], logger: logging.Logger) -> int:
    try:
        credentials = load_credentials(environ)
    except ConfigError as exc:
        return _fail(logger, str(exc), exc.error_code)

    with ChaosClient(credentials, endpoint=config.chaos_endpoint) as client:
        status = ScrapeStatus()
        registry = build_registry(BroadbandCollector(client, logger, status))
        app = build_app(registry, status, logger)
        try:
            server = build_server(config.listen, app)
        except ConfigError as exc:
            return _fail(logger, str(exc), exc.error_code)
        except OSError as exc:
            return _fail(logger, f"cannot listen on {config.listen}: {exc}", "LISTEN_ERROR")

        log_event(logger, f"Listening on {config.listen}", event="LISTEN", status="ok")
        _serve(server, logger)

    return EXIT_SUCCESS


def main(argv: list[str] | None = None, environ: Mapping[str, str] | None = None) -> int:
    args = parse_args(sys.argv[1:] if argv is None else argv)
    overrides = {
        "listen": args.listen,
        "log_level": args.log_level,
        "log_output": args.log_output,
        "chaos_endpoint": args.chaos_endpoint,
    }
    try:
        file_values = load_config_file(Path(args.config)) if args.config else {}
        config = resolve_config(overrides, file_values)
    except ConfigError as exc:
        logger = build_logger(args.log_level or DEFAULT_LOG_LEVEL, args.log_output or "json")
        return _fail(logger, str(exc), exc.error_code)

    logger = build_logger(config.log_level, config.log_output)
    return run_exporter(config, os.environ if environ is None else environ, logger)


if __name__ == "__main__":
    raise SystemExit(main())
