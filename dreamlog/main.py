# dreamlog/main.py
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI

from dreamlog.api.router import api_router
from dreamlog.core.config import Settings, get_settings
from dreamlog.core.cors import CORSPolicyMiddleware, SigningSecretGuard
from dreamlog.core.errors import register_exception_handlers
from dreamlog.db import init_models
from dreamlog.db.session import create_engine_for, create_session_factory

logger = logging.getLogger(__name__)


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or get_settings()
    logging.basicConfig(level=settings.LOG_LEVEL.upper())

    # Tables are created on startup, engine disposed on shutdown
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        engine = create_engine_for(settings)
        app.state.engine = engine
        app.state.session_factory = create_session_factory(engine)
        await init_models(engine)
        if not settings.SECRET_KEY:
            logger.error("SECRET_KEY is not set; every request will fail with server_misconfigured")
        yield
        await engine.dispose()

    app = FastAPI(
        title=settings.PROJECT_NAME,
        version=settings.PROJECT_VERSION,
        lifespan=lifespan,
    )
    app.state.settings = settings

    register_exception_handlers(app)

    # Last added runs first: CORS wraps the secret guard
    app.add_middleware(SigningSecretGuard, secret=settings.SECRET_KEY)
    app.add_middleware(CORSPolicyMiddleware, policy=settings.cors_policy)

    app.include_router(api_router)
    return app


app = create_app()
