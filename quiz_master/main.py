# main.py
from contextlib import asynccontextmanager
from typing import Optional
import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from .config import Settings
from .database import create_engine
from .identity import SupabaseIdentity
from .routes import auth, quiz_attempts, quiz_submissions, quizzes
from .storage import QuizStorage

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

def create_app(
    settings: Optional[Settings] = None,
    storage: Optional[QuizStorage] = None,
    identity: Optional[SupabaseIdentity] = None,
) -> FastAPI:
    """Build the API with an explicitly owned storage gateway and identity provider."""
    settings = settings or Settings.from_env()
    storage = storage or QuizStorage(create_engine(settings.database_url, settings.db_pool_size))
    identity = identity or SupabaseIdentity(
        url=settings.supabase_url,
        service_role_key=settings.supabase_service_role_key,
        jwt_secret=settings.supabase_jwt_secret,
    )
    if not (settings.supabase_url or settings.supabase_jwt_secret):
        logger.warning("Neither SUPABASE_URL nor SUPABASE_JWT_SECRET set. All tokens will be rejected.")

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await storage.create_tables()
        yield
        await identity.close()
        await storage.close()

    app = FastAPI(title="Quiz Master API", version="0.1.0", lifespan=lifespan)
    app.state.settings = settings
    app.state.storage = storage
    app.state.identity = identity

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(SQLAlchemyError)
    async def storage_error_handler(request: Request, exc: SQLAlchemyError):
        logger.exception(f"Storage error on {request.method} {request.url.path}")
        return JSONResponse(status_code=500, content={"detail": "Server error"})

    app.include_router(auth.router)
    app.include_router(quizzes.router)
    app.include_router(quiz_attempts.router)
    app.include_router(quiz_submissions.router)
    return app

app = create_app()

def main():
    import uvicorn

    settings = app.state.settings
    uvicorn.run(app, host=settings.host, port=settings.port)

if __name__ == "__main__":
    main()
