from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List, Optional
import os
from dotenv import load_dotenv

load_dotenv()

class Settings(BaseSettings):
    DB_USER: str = os.getenv("DB_USER", "root")
    DB_PASSWORD: str = os.getenv("DB_PASSWORD", "")
    DB_HOST: str = os.getenv("DB_HOST", "localhost")
    DB_PORT: str = os.getenv("DB_PORT", "3306")
    DB_NAME: str = os.getenv("DB_NAME", "lms_quiz")
    # Full SQLAlchemy URL; takes precedence over the DB_* parts when set
    DATABASE_URL: Optional[str] = os.getenv("DATABASE_URL")
    SQL_ECHO: bool = False

    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")
    CORS_ORIGINS: List[str] = ["*"]

    # Seconds tolerated past a quiz time limit before a submission is refused
    SUBMISSION_GRACE_SECONDS: int = 0
    # Apply random_count/difficulty/tag filters when a quiz has no manual list
    RANDOM_SELECTION_FILTERS: bool = False

    @property
    def ASYNC_DATABASE_URL(self) -> str:
        if self.DATABASE_URL:
            return self.DATABASE_URL
        return f"mysql+aiomysql://{self.DB_USER}:{self.DB_PASSWORD}@{self.DB_HOST}:{self.DB_PORT}/{self.DB_NAME}"

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

settings = Settings()
