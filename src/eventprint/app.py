"""FastAPI application factory for eventprint."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from eventprint.api import routes as api_routes
from eventprint.config import load_config, resolve_path, settings
from eventprint.dispatcher import PrintDispatcher
from eventprint.gateway import PhotoGateway
from eventprint.manager import PrintJobManager

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup/shutdown."""
    logger.info(f"Loading configuration from {settings.config_file}")
    config = load_config(settings.config_file)

    gateway = PhotoGateway(
        config.admin_panel_url,
        api_key=config.admin_api_key,
        timeout_seconds=config.request_timeout_seconds,
    )
    dispatcher = PrintDispatcher(
        config.printer,
        resolve_path(config.temp_dir, settings.config_file),
        simulate=config.simulate,
        sample_image=resolve_path(config.sample_image, settings.config_file) if config.sample_image else None,
        download_timeout=config.request_timeout_seconds,
    )
    manager = PrintJobManager(gateway, dispatcher)

    api_routes.set_app_state(manager, dispatcher, gateway, config)

    logger.info(f"Printer: {config.printer.name}")
    logger.info(f"Admin panel URL: {config.admin_panel_url}")
    if config.simulate:
        logger.warning("Simulate mode enabled, nothing will be sent to the printer")

    if config.auto_start_polling and config.event_id:
        try:
            await manager.start_polling(config.event_id, config.poll_interval_ms)
            logger.info(f"Auto-polling started for event {config.event_id} every {config.poll_interval_ms}ms")
        except Exception as e:
            logger.error(f"Auto-polling failed to start: {e}")
    else:
        logger.info("Auto-polling disabled or event_id not set; polling starts when requested")

    logger.info("eventprint startup complete")

    yield

    logger.info("eventprint shutting down")
    await manager.close()
    await gateway.close()
    logger.info("eventprint shutdown complete")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title="eventprint",
        description="Automatic printing of event photos",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.include_router(api_routes.router)
    return app


# Default app instance for uvicorn
app = create_app()
