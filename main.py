from contextlib import asynccontextmanager
from typing import Optional
import logging
import sys

from dotenv import load_dotenv
from fastapi import APIRouter, Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from config.settings import ConfigurationError, Settings, get_settings, validate_startup
from devices.routes import router as device_router
from devices.service import DeviceService
from errors.handlers import register_exception_handlers
from health.service import HealthCheckService
from middleware.api_key import API_KEY_HEADER, setup_api_key_auth
from middleware.request_id import REQUEST_ID_HEADER, RequestIDMiddleware
from resilience.retry import RetryConfig, RetryExhaustedException, retry_async
from services.coordinate_store import CoordinateStore
from services.elasticsearch_store import ElasticsearchCoordinateStore
from telemetry.service import initialize_telemetry
from tracker.device_tracker import Clock, DeviceTriggerTracker
from tracker.sweeper import TriggerSweeper

logger = logging.getLogger(__name__)

SERVICE_NAME = "Device Tracking API"
SERVICE_VERSION = "1.0.0"


# =============================================================================
# Health Check Endpoints
# =============================================================================
# /health is the liveness check used by deployments; it sits outside /api and
# never requires the API key.
# =============================================================================

health_router = APIRouter(tags=["health"])


def get_health_check_service(request: Request) -> HealthCheckService:
    return request.app.state.health_check_service


@health_router.get("/health")
async def health_basic(service: HealthCheckService = Depends(get_health_check_service)):
    """Uptime and store connection state. Does not contact the store."""
    return await service.check_health()


@health_router.get("/health/ready")
async def health_ready(service: HealthCheckService = Depends(get_health_check_service)):
    """
    Readiness check that pings the coordinate store.

    Returns 503 with failure reasons when the store does not answer.
    """
    health_status = await service.check_readiness()
    response_data = {
        "service": SERVICE_NAME,
        "version": SERVICE_VERSION,
        **health_status.to_dict(),
    }

    if health_status.status == "unhealthy":
        response_data["failure_reasons"] = [
            {"dependency": dep.name, "error": dep.error}
            for dep in health_status.dependencies
            if not dep.healthy
        ]
        return JSONResponse(status_code=503, content=response_data)

    return response_data


@health_router.get("/health/live")
async def health_live(service: HealthCheckService = Depends(get_health_check_service)):
    """Returns 200 while the process is running, regardless of the store."""
    result = await service.check_liveness()
    return {
        "status": result["status"],
        "service": SERVICE_NAME,
        "version": SERVICE_VERSION,
        "timestamp": result["timestamp"],
    }


# =============================================================================
# Application Factory
# =============================================================================


def create_app(
    settings: Settings,
    store: Optional[CoordinateStore] = None,
    clock: Optional[Clock] = None,
) -> FastAPI:
    """
    Build the FastAPI application and everything it owns.

    The tracker, sweeper and store are created here and live on app.state
    for the life of the application; handlers reach them through
    dependencies.

    Args:
        settings: Validated application settings
        store: Coordinate store; defaults to Elasticsearch from settings
        clock: Time source for the trigger tracker; defaults to UTC now
    """
    store = store or ElasticsearchCoordinateStore.from_settings(settings)
    tracker = DeviceTriggerTracker(window=settings.trigger_window, clock=clock)
    sweeper = TriggerSweeper(tracker, interval=settings.sweep_interval_seconds)

    connect_retry = RetryConfig.fixed_interval(
        max_attempts=settings.store_connect_max_attempts,
        interval=settings.store_connect_retry_interval_seconds,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Connect the store and start the sweeper; undo both on shutdown."""
        logger.info(f"Starting {SERVICE_NAME}...")
        try:
            await retry_async(
                store.connect,
                config=connect_retry,
                operation_name="coordinate_store_connect",
            )
        except RetryExhaustedException as e:
            # The service is useless without its store; failing here makes
            # uvicorn abort startup and exit the process.
            logger.critical(
                "Failed to connect to the coordinate store after multiple attempts",
                extra={"extra_data": {
                    "attempts": e.attempts,
                    "last_error": str(e.last_exception),
                }}
            )
            raise

        sweeper.start()
        logger.info(
            f"{SERVICE_NAME} running on port {settings.port}",
            extra={"extra_data": {"environment": settings.environment.value}}
        )

        yield

        logger.info("Shutting down gracefully...")
        await sweeper.stop()
        await store.close()
        logger.info("Coordinate store connection closed")

    app = FastAPI(title=SERVICE_NAME, version=SERVICE_VERSION, lifespan=lifespan)

    app.state.settings = settings
    app.state.store = store
    app.state.tracker = tracker
    app.state.sweeper = sweeper
    app.state.device_service = DeviceService(
        tracker=tracker,
        store=store,
        max_list_size=settings.max_list_size,
    )
    app.state.health_check_service = HealthCheckService(
        store=store,
        check_timeout=settings.store_request_timeout_seconds,
    )

    register_exception_handlers(app)

    # Middleware added last runs first: request id -> CORS -> API key
    setup_api_key_auth(app, settings.api_key)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=[
            "Accept",
            "Content-Type",
            API_KEY_HEADER,
            REQUEST_ID_HEADER,
        ],
        expose_headers=[REQUEST_ID_HEADER],
        max_age=600,
    )
    app.add_middleware(RequestIDMiddleware)

    app.include_router(device_router)
    app.include_router(health_router)

    return app


def main() -> None:
    """
    Validate configuration, set up logging and serve the API.

    Exits with status 1 when required configuration is missing. SIGINT and
    SIGTERM are handled by uvicorn, which runs the lifespan shutdown
    (sweeper stop, store close) before the process exits.
    """
    import uvicorn

    load_dotenv()

    try:
        settings = validate_startup(get_settings())
    except ConfigurationError as e:
        logging.basicConfig(level=logging.ERROR)
        logger.critical(f"Error: {e}")
        sys.exit(1)

    initialize_telemetry(settings)
    app = create_app(settings)
    uvicorn.run(app, host="0.0.0.0", port=settings.port, log_level=settings.log_level.lower())


if __name__ == "__main__":
    main()
