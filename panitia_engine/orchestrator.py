"""
Panitia Engine — process entrypoint.

1. Configures structured logging
2. Initializes the Assignment Store (schema + commission registry)
3. Builds the PanitiaService from settings
4. Serves the dashboard API

This is the entrypoint for the service container.
"""

from __future__ import annotations

import logging
import sys

import structlog
import uvicorn

from panitia_engine.config import settings

logger = logging.getLogger(__name__)


def configure_logging() -> None:
    """Configure structured logging."""
    logging.basicConfig(
        level=logging.getLevelName(settings.log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.dev.set_exc_info,
            structlog.processors.TimeStamper(fmt="iso"),
            (
                structlog.dev.ConsoleRenderer()
                if settings.log_format != "json"
                else structlog.processors.JSONRenderer()
            ),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            logging.getLevelName(settings.log_level)
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


def main() -> None:
    """Initialize services and run the dashboard."""
    configure_logging()
    log = structlog.get_logger()

    log.info(
        "panitia.orchestrator.starting",
        required_roles=settings.required_roles,
        min_commissions=settings.min_commissions,
        gatekeeper_rules=[rule.model_dump() for rule in settings.gatekeeper_rules],
    )

    from panitia_engine.engine.panitia import PanitiaService

    service = PanitiaService.from_settings(settings)
    try:
        service.store.initialize()
    except Exception as e:
        log.exception("panitia.orchestrator.store_init_failed", error=str(e))
        sys.exit(1)
    log.info("panitia.orchestrator.store_ready")

    from panitia_engine.dashboard.app import app, state as dashboard_state

    dashboard_state.service = service
    log.info(
        "panitia.orchestrator.running",
        host=settings.dashboard_host,
        port=settings.dashboard_port,
    )
    uvicorn.run(app, host=settings.dashboard_host, port=settings.dashboard_port)
    log.info("panitia.orchestrator.shutdown")


if __name__ == "__main__":
    main()
