# config.py
import os
from dotenv import load_dotenv
from pydantic import BaseModel
from typing import List, Optional

load_dotenv()

DEFAULT_DATABASE_URL = "sqlite+aiosqlite:///./quiz_master.db"

class Settings(BaseModel):
    database_url: str = DEFAULT_DATABASE_URL
    db_pool_size: int = 1  # Single shared connection, as in development
    supabase_url: Optional[str] = None
    supabase_service_role_key: Optional[str] = None
    supabase_jwt_secret: Optional[str] = None
    cors_origins: List[str] = ["http://localhost:3000"]
    api_url: str = "http://127.0.0.1:8000"
    submission_durability: str = "best_effort"
    host: str = "127.0.0.1"
    port: int = 8000

    @classmethod
    def from_env(cls) -> "Settings":
        origins = os.getenv("CORS_ORIGINS", "http://localhost:3000")
        return cls(
            database_url=os.getenv("DATABASE_URL", DEFAULT_DATABASE_URL),
            db_pool_size=int(os.getenv("DB_POOL_SIZE", "1")),
            supabase_url=os.getenv("SUPABASE_URL"),
            supabase_service_role_key=os.getenv("SUPABASE_SERVICE_ROLE_KEY"),
            supabase_jwt_secret=os.getenv("SUPABASE_JWT_SECRET"),
            cors_origins=[o.strip() for o in origins.split(",") if o.strip()],
            api_url=os.getenv("QUIZ_MASTER_API_URL", "http://127.0.0.1:8000"),
            submission_durability=os.getenv("SUBMISSION_DURABILITY", "best_effort"),
            host=os.getenv("HOST", "127.0.0.1"),
            port=int(os.getenv("PORT", "8000")),
        )
