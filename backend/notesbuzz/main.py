"""FastAPI application entry point."""
import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text

from notesbuzz.config import Settings, settings as default_settings
from notesbuzz.database import build_engine, build_session_factory, get_session_factory
from notesbuzz.exceptions import InvalidInput, NotesbuzzError
from notesbuzz.logging_config import setup_logging
from notesbuzz.models import Base
from notesbuzz.routes.auth import router as auth_router
from notesbuzz.routes.files import router as files_router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Open the database handle, create tables, close on shutdown."""
    settings: Settings = app.state.settings
    setup_logging(settings.LOG_LEVEL)

    engine = build_engine(settings.DATABASE_URL)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    app.state.engine = engine
    app.state.session_factory = build_session_factory(engine)
    logger.info("Database connected and blob tables ready")

    yield

    await engine.dispose()
    logger.info("Database connection closed")


async def notesbuzz_error_handler(request: Request, exc: NotesbuzzError):
    content = {"message": exc.message}
    if isinstance(exc, InvalidInput) and exc.errors:
        content["errors"] = exc.errors
    return JSONResponse(status_code=exc.status_code, content=content)


async def validation_error_handler(request: Request, exc: RequestValidationError):
    """Malformed request bodies are InvalidInput (400), not FastAPI's 422."""
    errors = [
        {
            "field": ".".join(str(part) for part in err["loc"][1:]) or str(err["loc"][0]),
            "message": err["msg"],
        }
        for err in exc.errors()
    ]
    return await notesbuzz_error_handler(request, InvalidInput("Invalid input", errors=errors))


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or default_settings

    app = FastAPI(
        title="Notesbuzz API",
        version="1.0.0",
        description="File sharing backend with chunked blob storage.",
        lifespan=lifespan,
    )
    app.state.settings = settings

    # CORS
    origins = [o.strip() for o in settings.CORS_ORIGINS.split(",")]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(NotesbuzzError, notesbuzz_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)

    @app.get("/health")
    async def health_check(request: Request):
        """Verify API and database connectivity."""
        try:
            async with get_session_factory(request)() as db:
                await db.execute(text("SELECT 1"))
        except Exception:
            logger.exception("Health check failed")
            return {"status": "error", "database": "unavailable"}
        return {"status": "ok", "database": "connected"}

    app.include_router(auth_router)
    app.include_router(files_router)
    return app


app = create_app()


def run():
    """Console entry point: serve the app with uvicorn."""
    uvicorn.run(app, host=default_settings.API_HOST, port=default_settings.API_PORT)


if __name__ == "__main__":
    run()
