"""CLI entrypoint for the delta metrics service."""

import argparse
import json
import os
import platform
import signal
import sys
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional

from flask import Flask
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from werkzeug.serving import make_server

from deltametrics import __version__
from deltametrics.api.app import create_app
from deltametrics.cache.result_cache import ResultCache
from deltametrics.config.loader import DEFAULT_CONFIG_PATH, load_config, resolve_database_url
from deltametrics.database.descriptor import EntityRegistry, default_registry
from deltametrics.database.engine import SchemaInitError, get_engine, get_session_factory, init_schema
from deltametrics.database.repository import Repository, build_repositories
from deltametrics.errors import ConfigError
from deltametrics.ops.view_refresh import ViewRefreshScheduler, default_jobs
from deltametrics.utils.logging import configure_logging, get_logger

logger = get_logger(__name__)

SHUTDOWN_TIMEOUT_SECONDS = 30.0
SHUTDOWN_SIGNALS = ("SIGINT", "SIGTERM", "SIGUSR1")


@dataclass
class Services:
    engine: Engine
    registry: EntityRegistry
    cache: ResultCache
    repositories: Dict[str, Repository]
    scheduler: Optional[ViewRefreshScheduler]
    app: Flask


def _load_config(args: argparse.Namespace) -> Dict[str, Any]:
    path = Path(args.config) if getattr(args, "config", None) else None
    config = load_config(path, allow_missing=path is None)
    try:
        configure_logging(config["logging"]["level"])
    except ValueError as e:
        raise ConfigError(str(e)) from e
    return config


def _engine_from_config(config: Dict[str, Any]) -> Engine:
    database = config["database"]
    return get_engine(
        resolve_database_url(config),
        log_sql=bool(database.get("log_sql")),
        statement_timeout_ms=database.get("statement_timeout_ms"),
    )


def build_services(config: Dict[str, Any], engine: Optional[Engine] = None) -> Services:
    """
    Wire engine, schema, cache, repositories, scheduler and Flask app.

    Raises:
        ConfigError: connection settings are missing or invalid
        SchemaInitError: store unreachable or tables could not be created
    """
    engine = engine or _engine_from_config(config)
    init_schema(engine)

    registry = default_registry()
    cache_cfg = config["cache"]
    cache = ResultCache(
        max_bytes=cache_cfg["max_bytes"],
        ttl_seconds=cache_cfg["ttl_seconds"],
        purge_interval_seconds=cache_cfg["purge_interval_seconds"],
    )
    repositories = build_repositories(
        registry,
        get_session_factory(engine),
        cache=cache,
        invalidate_on_write=bool(cache_cfg["invalidate_on_write"]),
        skip_zero_values=bool(config["repository"]["merge_skips_zero_values"]),
    )

    scheduler = None
    scheduler_cfg = config["scheduler"]
    if scheduler_cfg["enabled"]:
        scheduler = ViewRefreshScheduler(
            engine,
            default_jobs(Path(scheduler_cfg["script_dir"])),
            interval_seconds=scheduler_cfg["interval_seconds"],
        )

    app = create_app(repositories, registry, cache=cache, scheduler=scheduler)
    return Services(engine, registry, cache, repositories, scheduler, app)


def _install_signal_handlers(stop: threading.Event) -> None:
    def _handler(signum, _frame):
        logger.info(f"Received {signal.Signals(signum).name}, shutting down")
        stop.set()

    for name in SHUTDOWN_SIGNALS:
        sig = getattr(signal, name, None)
        if sig is not None:
            signal.signal(sig, _handler)


def cmd_serve(args: argparse.Namespace) -> int:
    try:
        config = _load_config(args)
        services = build_services(config)
    except (ConfigError, SchemaInitError, SQLAlchemyError) as e:
        logger.error(f"Startup failed: {e}")
        return 1

    server_cfg = config["server"]
    host = args.host or server_cfg["host"]
    port = args.port or server_cfg["port"]
    try:
        server = make_server(host, port, services.app, threaded=True)
    except OSError as e:
        logger.error(f"Cannot bind {host}:{port}: {e}")
        services.engine.dispose()
        return 1

    services.cache.start_purge_loop()
    if services.scheduler is not None:
        services.scheduler.start()

    server_thread = threading.Thread(target=server.serve_forever, name="http-server", daemon=True)
    server_thread.start()
    logger.info(f"Serving {len(services.registry)} entities on http://{host}:{port}")

    stop = threading.Event()
    _install_signal_handlers(stop)
    while not stop.wait(1.0):
        pass

    server.shutdown()
    if services.scheduler is not None:
        services.scheduler.stop(SHUTDOWN_TIMEOUT_SECONDS)
    services.cache.stop(SHUTDOWN_TIMEOUT_SECONDS)
    services.engine.dispose()
    logger.info("Shutdown complete")
    return 0


def cmd_init_db(args: argparse.Namespace) -> int:
    try:
        config = _load_config(args)
        engine = _engine_from_config(config)
        init_schema(engine)
    except (ConfigError, SchemaInitError, SQLAlchemyError) as e:
        logger.error(f"Schema init failed: {e}")
        return 1
    engine.dispose()
    print(f"Schema ready: {len(default_registry())} tables")
    return 0


def cmd_refresh_views(args: argparse.Namespace) -> int:
    try:
        config = _load_config(args)
        engine = _engine_from_config(config)
    except (ConfigError, SQLAlchemyError) as e:
        logger.error(f"Refresh failed: {e}")
        return 1

    jobs = default_jobs(Path(args.script_dir or config["scheduler"]["script_dir"]))
    if args.job:
        jobs = [job for job in jobs if job.name == args.job]
    scheduler = ViewRefreshScheduler(engine, jobs, interval_seconds=config["scheduler"]["interval_seconds"])

    failed = 0
    for job in scheduler.jobs:
        run = scheduler.run_job(job)
        status = "OK" if run.success else f"FAILED ({run.error})"
        print(f"{job.name}: {status}")
        if not run.success:
            failed += 1
    engine.dispose()
    return 1 if failed else 0


def cmd_entities(args: argparse.Namespace) -> int:
    registry = default_registry()
    if args.format == "json":
        print(json.dumps([d.describe() for d in registry], indent=2))
        return 0
    for descriptor in registry:
        print(f"{descriptor.name:<40} {len(descriptor.fields):>3} fields  ({descriptor.json_casing} json)")
    return 0


def version_info() -> str:
    return (
        "Application build information\n"
        f"  Version         : {__version__}\n"
        f"  Build date      : {os.environ.get('BUILD_DATE', 'unknown')}\n"
        f"  Build number    : {os.environ.get('BUILD_NUMBER', 'unknown')}\n"
        f"  Git commit      : {os.environ.get('LATEST_COMMIT', 'unknown')}\n"
        f"  Runtime version : Python {platform.python_version()}\n"
        f"  Built on OS     : {platform.system()} {platform.release()}\n"
    )


def cmd_version(args: argparse.Namespace) -> int:
    print(version_info())
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="delta-metrics",
        description="CRUD REST service over delta telemetry log tables",
    )
    parser.add_argument(
        "--config",
        type=str,
        help=f"Path to config file (default: {DEFAULT_CONFIG_PATH})",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands", required=True)

    # serve command
    serve_parser = subparsers.add_parser("serve", help="Run the REST service and view refresh scheduler")
    serve_parser.add_argument("--host", type=str, help="Bind address (default: server.host)")
    serve_parser.add_argument("--port", type=int, help="Bind port (default: server.port)")
    serve_parser.set_defaults(func=cmd_serve)

    # init-db command
    init_parser = subparsers.add_parser("init-db", help="Create any missing tables")
    init_parser.set_defaults(func=cmd_init_db)

    # refresh-views command
    refresh_parser = subparsers.add_parser("refresh-views", help="Run the view refresh scripts once")
    refresh_parser.add_argument(
        "--job",
        type=str,
        choices=[job.name for job in default_jobs()],
        help="Run a single job (default: all)",
    )
    refresh_parser.add_argument("--script-dir", type=str, help="Directory holding the refresh scripts")
    refresh_parser.set_defaults(func=cmd_refresh_views)

    # entities command
    entities_parser = subparsers.add_parser("entities", help="List registered entities")
    entities_parser.add_argument(
        "--format",
        type=str,
        choices=["text", "json"],
        default="text",
        help="Output format (default: text)",
    )
    entities_parser.set_defaults(func=cmd_entities)

    # version command
    version_parser = subparsers.add_parser("version", help="Show build information")
    version_parser.set_defaults(func=cmd_version)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI entrypoint."""
    args = build_parser().parse_args(argv)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
