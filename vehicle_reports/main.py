# vehicle_reports/main.py
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone

import httpx
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from vehicle_reports.api.auth import router as auth_router
from vehicle_reports.api.config import router as config_router
from vehicle_reports.api.reports import router as reports_router
from vehicle_reports.api.vehicles import router as vehicles_router
from vehicle_reports.core.config import Settings, settings as default_settings
from vehicle_reports.core.errors import ReportsError
from vehicle_reports.services.token_exchange import ChallengeSigner, sign_challenge

logger = logging.getLogger(__name__)


def create_app(
    settings: Settings | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
    signer: ChallengeSigner = sign_challenge,
    clock=lambda: datetime.now(timezone.utc),
) -> FastAPI:
    settings = settings or default_settings
    logging.basicConfig(level=settings.log_level.upper(),
                        format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # === STARTUP ===
        settings.data_dir.mkdir(parents=True, exist_ok=True)
        app.state.http = httpx.AsyncClient(timeout=settings.http_timeout, transport=transport)
        logger.info("Using data directory %s", settings.data_dir.resolve())
        yield
        # === SHUTDOWN ===
        await app.state.http.aclose()

    app = FastAPI(title="DIMO Vehicle Reports", lifespan=lifespan)
    app.state.settings = settings
    app.state.signer = signer
    app.state.clock = clock

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(ReportsError)
    async def reports_error_handler(request: Request, exc: ReportsError):
        if exc.status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
        return JSONResponse(status_code=exc.status_code, content={"error": exc.message})

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        first = exc.errors()[0] if exc.errors() else {}
        where = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
        msg = first.get("msg", "Invalid request")
        return JSONResponse(status_code=400, content={"error": f"{where}: {msg}" if where else msg})

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.error("Unhandled exception on %s %s", request.method, request.url.path, exc_info=exc)
        return JSONResponse(status_code=500, content={"error": "Internal server error"})

    app.include_router(config_router, prefix="/api/config", tags=["config"])
    app.include_router(auth_router, prefix="/api/auth", tags=["auth"])
    app.include_router(vehicles_router, prefix="/api/vehicles", tags=["vehicles"])
    app.include_router(reports_router, prefix="/api/reports", tags=["reports"])

    @app.get("/")
    def root():
        return {"ok": True}

    return app


app = create_app()
