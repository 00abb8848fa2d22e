import os
from pydantic_settings import BaseSettings
from dotenv import load_dotenv
from typing import List, Optional
from sqlalchemy.engine.url import URL

# Load .env file if it exists
load_dotenv()

class Settings(BaseSettings):
    PROJECT_NAME: str = "Exam Engine API"
    API_V1_STR: str = "/api/v1"

    # Database configuration (async driver required)
    DB_DRIVER: str = os.getenv("DB_DRIVER", "mysql+aiomysql") # Use 'postgresql+asyncpg' for PostgreSQL
    DB_HOST: str = os.getenv("DB_HOST", "localhost")
    DB_PORT: int = int(os.getenv("DB_PORT", 3306))
    DB_USER: str = os.getenv("DB_USER", "root")
    DB_PASSWORD: str = os.getenv("DB_PASSWORD", "")
    DB_NAME: str = os.getenv("DB_NAME", "exam_engine")
    # Full URL wins over the parts above, e.g. sqlite+aiosqlite:///./exams.db
    DATABASE_URL: Optional[str] = os.getenv("DATABASE_URL")

    # JWT Settings (tokens are issued by the identity provider, we only verify them)
    SECRET_KEY: str = os.getenv("SECRET_KEY", "a_very_secret_key_change_this_in_production") # CHANGE THIS!
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24

    # CORS Origins (adjust in production)
    BACKEND_CORS_ORIGINS: List[str] = ["*"]

    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    # Attempt expiry
    ATTEMPT_EXPIRY_GRACE_MINUTES: int = int(os.getenv("ATTEMPT_EXPIRY_GRACE_MINUTES", 0))
    EXPIRE_STALE_ON_START: bool = os.getenv("EXPIRE_STALE_ON_START", "true").lower() in ("1", "true", "yes")

    # Development convenience, use migrations in production
    AUTO_CREATE_TABLES: bool = os.getenv("AUTO_CREATE_TABLES", "false").lower() in ("1", "true", "yes")

    @property
    def SQLALCHEMY_DATABASE_URI(self) -> str:
        if self.DATABASE_URL:
            return self.DATABASE_URL
        return URL.create(
            drivername=self.DB_DRIVER,
            username=self.DB_USER,
            password=self.DB_PASSWORD or None,
            host=self.DB_HOST,
            port=self.DB_PORT,
            database=self.DB_NAME,
        ).render_as_string(hide_password=False)

    class Config:
        case_sensitive = True
        env_file = ".env"
        env_file_encoding = 'utf-8'

settings = Settings()

# Example .env file content:
# DB_HOST=127.0.0.1
# DB_PORT=3306
# DB_USER=exams
# DB_PASSWORD=mypassword
# DB_NAME=exam_engine
# SECRET_KEY=shared_secret_with_identity_provider
# ATTEMPT_EXPIRY_GRACE_MINUTES=2
