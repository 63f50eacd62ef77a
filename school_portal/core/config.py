# school_portal/core/config.py

from dotenv import load_dotenv
from pydantic_settings import BaseSettings

load_dotenv()


class Settings(BaseSettings):
    # MongoDB
    MONGO_URI: str = "mongodb://localhost:27017"
    MONGO_DB_NAME: str = "school_portal"

    # Auth
    JWT_SECRET_KEY: str = "change-me"
    JWT_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60
    BCRYPT_ROUNDS: int = 12

    # Idle session timer
    IDLE_TIMEOUT_MINUTES: int = 15
    IDLE_WARNING_COUNTDOWN_SECONDS: int = 60

    # Evaluation reports divide by this, whatever the form's own scale says
    REPORT_MAX_SCALE: float = 5.0

    # External model-serving endpoint
    ML_SERVICE_URL: str = "http://localhost:8500/predict"
    ML_SERVICE_TIMEOUT: float = 30.0

    # Audit log listing
    AUDIT_LOG_PAGE_LIMIT: int = 50

    # Root level for the "school_portal" logger
    LOG_LEVEL: str = "INFO"

    class Config:
        env_prefix = "SCHOOL_PORTAL_"
        case_sensitive = False


CONFIG = Settings()
