from pydantic_settings import BaseSettings
from typing import Optional
from pathlib import Path

# Find .env file - check koperasi/ directory first, then project root
BASE_DIR = Path(__file__).resolve().parent.parent.parent
APP_ENV = BASE_DIR / "koperasi" / ".env"
ROOT_ENV = BASE_DIR / ".env"

# Use koperasi/.env if it exists, otherwise try root .env
env_file = str(APP_ENV) if APP_ENV.exists() else (str(ROOT_ENV) if ROOT_ENV.exists() else ".env")


class Settings(BaseSettings):
    # Database
    DATABASE_URL: str

    # JWT
    SECRET_KEY: str
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 30

    # SMTP
    SMTP_HOST: Optional[str] = None
    SMTP_PORT: Optional[int] = 587
    SMTP_USER: Optional[str] = None
    SMTP_PASSWORD: Optional[str] = None
    FROM_EMAIL: Optional[str] = None
    REPLY_TO_EMAIL: Optional[str] = None

    # Installment periods
    DEFAULT_TERM_DURATION: int = 36
    MIN_FALLBACK_TERM: int = 12
    ALLOW_PERIODS_BEYOND_TERM: bool = False
    MAX_INSTALLMENT_PERIOD: int = 120

    # Uploads
    MAX_PROOF_FILE_MB: int = 5
    UPLOADS_DIR: Optional[str] = None

    # Scheduler
    ENABLE_SCHEDULER: bool = True
    SCHEDULER_INTERVAL_MINUTES: int = 1440

    # Application
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"
    AUDIT_LOG_DIR: Optional[str] = None

    class Config:
        env_file = env_file
        case_sensitive = True


settings = Settings()

# Derived paths
UPLOADS_DIR = Path(settings.UPLOADS_DIR) if settings.UPLOADS_DIR else BASE_DIR / "uploads"
SAVINGS_PROOFS_DIR = UPLOADS_DIR / "simpanan"
LOGS_DIR = Path(settings.AUDIT_LOG_DIR) if settings.AUDIT_LOG_DIR else BASE_DIR / "logs"
