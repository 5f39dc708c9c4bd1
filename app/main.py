from contextlib import asynccontextmanager

from fastapi import FastAPI

from api.v1.rooms import router as rooms_router
from api.v1.users import router as users_router
from app.chat.factory import shutdown_pipeline
from app.config import get_settings
from app.core.langsmith import configure_langsmith
from app.core.logging import configure_logging
from app.core.middleware import RoomContextMiddleware


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    shutdown_pipeline()


def create_app() -> FastAPI:
    configure_logging()
    configure_langsmith()

    app = FastAPI(title="Sui Room Chat", version="0.1.0", lifespan=lifespan)
    app.add_middleware(RoomContextMiddleware)

    @app.get("/healthz")
    async def healthz():
        s = get_settings()
        return {
            "ok": True,
            "llm_enabled": s.LLM_ENABLED,
            "llm_model": s.LLM_MODEL,
            "db_configured": bool(s.DATABASE_URL),
            "sui_network": s.sui_network,
        }

    app.include_router(users_router, prefix="/v1")
    app.include_router(rooms_router, prefix="/v1")
    return app


app = create_app()
