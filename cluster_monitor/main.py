import argparse
import asyncio
import sys

from prometheus_client import start_http_server
from pydantic import ValidationError

from cluster_monitor.accessors.registry import SqlRegistryAccessor
from cluster_monitor.accessors.source import SqlSourceAccessor
from cluster_monitor.core.config import Settings
from cluster_monitor.core.database import Database
from cluster_monitor.core.exceptions import ConnectionSetupError, StartupError
from cluster_monitor.core.logging_config import setup_logging, get_logger
from cluster_monitor.db.init_db import init_ops_schema
from cluster_monitor.services.aggregator import MetricsAggregator
from cluster_monitor.services.scheduler import Scheduler

logger = get_logger("main")


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Per-cluster mining statistics monitor")
    parser.add_argument("-source", "--source-dsn", dest="SOURCE_DSN", help="mining/fleet source database DSN")
    parser.add_argument("-ops", "--ops-dsn", dest="OPS_DSN", help="operations database DSN")
    parser.add_argument("-i", "--interval", dest="INTERVAL_MINUTES", type=int, help="check interval (minutes)")
    parser.add_argument("--timezone", dest="REPORT_TIMEZONE", help="timezone that defines 'today' for rewards")
    parser.add_argument("--log-level", dest="LOG_LEVEL")
    parser.add_argument("--log-format", dest="LOG_FORMAT", choices=["json", "console"])
    parser.add_argument("--metrics-port", dest="METRICS_PORT", type=int, help="expose Prometheus metrics on this port")
    parser.add_argument("--create-tables", dest="CREATE_TABLES", action="store_true", default=None,
                        help="create the operations tables if missing")
    return parser.parse_args(argv)


def build_settings(args) -> Settings:
    # CLI flags win over environment / .env values
    overrides = {k: v for k, v in vars(args).items() if v is not None and k != "LOG_FORMAT"}
    if args.LOG_FORMAT is not None:
        overrides["LOG_JSON"] = args.LOG_FORMAT == "json"
    return Settings(**overrides)


async def run(settings: Settings, max_cycles=None, sleep=asyncio.sleep):
    source_db = Database("source", settings.SOURCE_DSN)
    ops_db = Database("ops", settings.OPS_DSN)
    try:
        await source_db.connect()
        await ops_db.connect()

        if settings.CREATE_TABLES:
            try:
                await init_ops_schema(ops_db.engine)
            except Exception as e:
                raise StartupError("ops_schema", str(e)) from e
            logger.info("ops_schema_ready")

        if settings.METRICS_PORT:
            try:
                start_http_server(settings.METRICS_PORT)
            except OSError as e:
                raise StartupError("metrics_exporter", str(e)) from e
            logger.info("metrics_exporter_started", port=settings.METRICS_PORT)

        source = SqlSourceAccessor(source_db.engine, settings.report_tz)
        registry = SqlRegistryAccessor(ops_db.engine)
        scheduler = Scheduler(settings, registry, MetricsAggregator(source), sleep=sleep)

        logger.info("monitor_started", interval_minutes=settings.INTERVAL_MINUTES, timezone=settings.REPORT_TIMEZONE)
        await scheduler.run_forever(max_cycles=max_cycles)
    finally:
        await source_db.dispose()
        await ops_db.dispose()


def main(argv=None) -> int:
    args = parse_args(argv)
    try:
        settings = build_settings(args)
    except ValidationError as e:
        setup_logging()
        logger.critical("invalid_configuration", error=str(e), msg="source and ops DSNs are required")
        return 1

    setup_logging(settings.LOG_LEVEL, settings.LOG_JSON)

    try:
        asyncio.run(run(settings))
    except ConnectionSetupError as e:
        logger.critical("database_init_failed", store=e.store, error=e.reason)
        return 1
    except StartupError as e:
        logger.critical("startup_failed", stage=e.stage, error=e.reason)
        return 1
    except KeyboardInterrupt:
        logger.info("monitor_stopped")
    return 0


if __name__ == "__main__":
    sys.exit(main())
