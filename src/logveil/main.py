"""
Relay entry point.

Wires settings, logging, the salt provider, the outputs, the rotation
coordinator and the stream pump together, and maps fatal startup errors
to a non-zero exit status.
"""

import argparse
import logging
import sys
from functools import partial
from typing import List, Optional

import structlog
from prometheus_client import start_http_server

from . import __version__
from .config import Settings, use_config_file
from .core.exceptions import LogVeilException
from .core.metrics import MetricsCollector
from .core.output import OutputRouter, open_output_target
from .core.pump import PumpStats, StreamPump, open_input
from .core.rotation import RotationCoordinator
from .core.salt import SaltProvider


def configure_logging(log_level: str = "INFO") -> None:
    """Configure structured logging for the relay."""
    logging.basicConfig(
        format="%(message)s",
        level=getattr(logging, log_level.upper()),
        stream=sys.stderr,
    )

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.format_exc_info,
            structlog.dev.ConsoleRenderer(),
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


def run(settings: Settings, metrics: Optional[MetricsCollector] = None) -> PumpStats:
    """
    Run the relay until the input stream ends.

    Raises:
        MissingSecretError: high assurance mode without a secret
        InputStreamError: the input cannot be opened
        OutputTargetError: the outputs cannot be opened
    """
    logger = structlog.get_logger(__name__)

    salt_provider = SaltProvider(
        settings.privacy.secret,
        fallback_salt_allowed=settings.privacy.fallback_salt_allowed,
    )

    opener = partial(
        open_output_target,
        settings.paths.tracked_path,
        settings.paths.untracked_path,
        settings.paths.file_mode,
    )
    router = OutputRouter(opener())

    coordinator = RotationCoordinator(router, opener, metrics=metrics)
    coordinator.install_signal_handler(settings.rotation.signal_name)
    coordinator.start()

    try:
        logger.info("Opening input stream", path=str(settings.paths.input_path))
        with open_input(settings.paths.input_path) as source:
            pump = StreamPump(source, router, salt_provider, metrics=metrics)
            return pump.run()
    finally:
        coordinator.stop()
        router.close()


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(prog="logveil", description="Privacy-preserving access-log relay")
    parser.add_argument("--config", help="Path to a YAML config file")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    args = parser.parse_args(argv)

    settings = use_config_file(args.config)
    configure_logging(settings.log_level)
    logger = structlog.get_logger(__name__)
    logger.info(
        "Starting LogVeil relay",
        version=__version__,
        assurance_mode=settings.privacy.assurance_mode.value,
    )

    metrics = MetricsCollector()
    if settings.metrics_port:
        start_http_server(settings.metrics_port)
        logger.info("Metrics endpoint listening", port=settings.metrics_port)

    try:
        stats = run(settings, metrics=metrics)
    except LogVeilException as e:
        logger.error("FATAL: relay cannot start", error=str(e), error_code=e.error_code, details=e.details)
        return 1

    logger.info("LogVeil relay stopped", lines_written=stats.written)
    return 0


if __name__ == "__main__":
    sys.exit(main())
