from pydantic_settings import BaseSettings
from typing import List, Any
import json
from pathlib import Path


def parse_cors_origins(v: Any) -> List[str]:
    """Parse CORS origins from string or list"""
    if isinstance(v, list):
        return v
    if isinstance(v, str):
        # Try JSON parsing first
        if v.startswith('['):
            try:
                return json.loads(v)
            except json.JSONDecodeError:
                pass
        # Fall back to comma-separated
        return [origin.strip() for origin in v.split(',') if origin.strip()]
    return []


class Settings(BaseSettings):
    """Application settings - all configurable via environment variables"""

    # ==========================================
    # Application
    # ==========================================
    APP_NAME: str = "TrainCRM"
    ENVIRONMENT: str = "development"
    DEBUG: bool = True
    SECRET_KEY: str
    API_VERSION: str = "v1"

    # Server Configuration
    SERVER_HOST: str = "0.0.0.0"
    SERVER_PORT: int = 8000

    # ==========================================
    # Database
    # ==========================================
    DATABASE_URL: str
    DB_POOL_SIZE: int = 10
    DB_MAX_OVERFLOW: int = 20
    DB_POOL_TIMEOUT: int = 30
    DB_POOL_RECYCLE: int = 1800  # 30 minutes
    DB_ECHO: bool = False

    # ==========================================
    # Authentication
    # ==========================================
    JWT_SECRET_KEY: str
    JWT_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 480  # one working day
    REFRESH_TOKEN_EXPIRE_DAYS: int = 14
    BCRYPT_ROUNDS: int = 12  # 4 for dev (fast), 12 for prod (secure)

    # ==========================================
    # Email
    # ==========================================
    SMTP_HOST: str = ""
    SMTP_PORT: int = 587
    SMTP_USER: str = ""
    SMTP_PASSWORD: str = ""
    EMAIL_FROM: str = "noreply@traincrm.local"
    EMAIL_FROM_NAME: str = "TrainCRM"

    # SendGrid Configuration (preferred for campaign sends)
    SENDGRID_API_KEY: str = ""
    USE_SENDGRID: bool = True  # Use SendGrid when API key is available

    # ==========================================
    # CORS (stored as comma-separated string, parsed to list)
    # ==========================================
    CORS_ORIGINS_STR: str = "http://localhost:3000,http://localhost:5173,http://127.0.0.1:3000,http://127.0.0.1:5173"

    @property
    def CORS_ORIGINS(self) -> List[str]:
        """Parse CORS origins from comma-separated string"""
        return parse_cors_origins(self.CORS_ORIGINS_STR)

    # ==========================================
    # Rate Limiting
    # ==========================================
    RATE_LIMIT_ENABLED: bool = True
    RATE_LIMIT_PER_MINUTE: int = 60
    RATE_LIMIT_STORAGE_URI: str = ""  # e.g. redis://localhost:6379/0, in-memory when empty

    # ==========================================
    # Request limits
    # ==========================================
    MAX_REQUEST_SIZE: int = 5 * 1024 * 1024  # 5MB, roster imports are the largest bodies

    # ==========================================
    # Logging
    # ==========================================
    LOG_LEVEL: str = "INFO"
    LOG_FILE: str = ""  # empty disables the rotating file handler

    # ==========================================
    # Certificates
    # ==========================================
    CERTIFICATE_STORAGE_PATH: str = "storage/certificates"
    CERTIFICATE_VERIFY_BASE_URL: str = "http://localhost:3000/verify"
    CERTIFICATE_VALIDITY_YEARS: int = 2
    CERTIFICATE_ISSUER_NAME: str = "TrainCRM Training Network"

    # ==========================================
    # Scheduling
    # ==========================================
    SCHEDULING_DAY_START_HOUR: int = 8
    SCHEDULING_DAY_END_HOUR: int = 18
    SCHEDULING_SLOT_STEP_MINUTES: int = 30
    SCHEDULING_MAX_SUGGESTIONS: int = 3

    # ==========================================
    # Rosters
    # ==========================================
    ROSTER_NEARLY_FULL_RATIO: float = 0.9
    ROSTER_AUTO_PROMOTE_ON_WITHDRAW: bool = True

    # ==========================================
    # Governance
    # ==========================================
    WORKFLOW_DEFAULT_SLA_HOURS: int = 72

    # ==========================================
    # CRM
    # ==========================================
    LEAD_HIGH_SCORE_THRESHOLD: int = 70
    DEFAULT_CURRENCY: str = "CAD"

    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "ignore"  # Ignore extra fields in .env that aren't defined in Settings

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self._base_dir = Path(__file__).resolve().parent.parent.parent
        if self.LOG_FILE:
            Path(self.LOG_FILE).parent.mkdir(exist_ok=True, parents=True)

    @property
    def CERTIFICATE_DIR(self) -> Path:
        path = Path(self.CERTIFICATE_STORAGE_PATH)
        if not path.is_absolute():
            path = self._base_dir / path
        return path

    def is_dev_mode(self) -> bool:
        """Check if running in development mode"""
        return self.ENVIRONMENT == "development" or self.DEBUG

    def get_verification_url(self, verification_code: str) -> str:
        """Public URL where a certificate can be verified"""
        return f"{self.CERTIFICATE_VERIFY_BASE_URL.rstrip('/')}/{verification_code}"


# Create settings instance
settings = Settings()
