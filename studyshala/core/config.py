from pydantic_settings import BaseSettings
from typing import List, Any, Optional
import json
from pathlib import Path


def parse_csv_list(v: Any) -> List[str]:
    """Parse a list setting from a JSON array or comma-separated string"""
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
        return [item.strip() for item in v.split(',') if item.strip()]
    return []


def parse_extensions(v: Any) -> List[str]:
    """Parse allowed extensions, normalised to lower case without leading dots"""
    return [ext.lower().lstrip('.') for ext in parse_csv_list(v)]


def parse_emails(v: Any) -> List[str]:
    """Parse an email allow-list, normalised to lower case"""
    return [email.lower() for email in parse_csv_list(v)]


class Settings(BaseSettings):
    """Application settings - all configurable via environment variables"""

    # ==========================================
    # Application
    # ==========================================
    APP_NAME: str = "StudyShala"
    ENVIRONMENT: str = "development"
    DEBUG: bool = False
    API_VERSION: str = "v1"

    # Server Configuration
    SERVER_HOST: str = "0.0.0.0"
    SERVER_PORT: int = 8000

    # ==========================================
    # Database
    # ==========================================
    DATABASE_URL: str
    DB_ECHO: bool = False
    DB_POOL_SIZE: int = 10
    DB_MAX_OVERFLOW: int = 20
    DB_POOL_TIMEOUT: int = 30
    DB_POOL_RECYCLE: int = 1800  # 30 minutes

    # ==========================================
    # Redis (optional: OAuth state store and rate limit storage)
    # ==========================================
    REDIS_URL: str = "redis://localhost:6379/0"

    # ==========================================
    # Authentication
    # ==========================================
    JWT_SECRET_KEY: str
    JWT_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 10080  # 7 days

    # Comma-separated emails allowed to hold the admin role
    ADMIN_EMAILS_STR: str = ""

    # When true, a returning non-admin may switch between student and faculty at login
    LOGIN_ROLE_SWITCH_ENABLED: bool = True

    @property
    def ADMIN_EMAILS(self) -> List[str]:
        """Parse admin allow-list from comma-separated string"""
        return parse_emails(self.ADMIN_EMAILS_STR)

    def is_admin_email(self, email: Optional[str]) -> bool:
        if not email:
            return False
        return email.strip().lower() in self.ADMIN_EMAILS

    # ==========================================
    # Google OAuth
    # ==========================================
    GOOGLE_CLIENT_ID: str = ""
    GOOGLE_CLIENT_SECRET: str = ""
    GOOGLE_REDIRECT_URI: str = "http://localhost:8000/api/v1/auth/google/callback"

    # OAuth CSRF state
    OAUTH_STATE_BACKEND: str = "memory"  # "memory" or "redis"
    OAUTH_STATE_TTL_SECONDS: int = 600  # 10 minutes
    OAUTH_STATE_SWEEP_INTERVAL_SECONDS: int = 60
    OAUTH_STATE_REDIS_PREFIX: str = "oauth_state:"

    # ==========================================
    # Google Drive
    # ==========================================
    DRIVE_UPLOADS_ENABLED: bool = True
    DRIVE_SERVICE_ACCOUNT_FILE: str = ""
    DRIVE_CLIENT_ID: str = ""
    DRIVE_CLIENT_SECRET: str = ""
    DRIVE_REFRESH_TOKEN: str = ""
    DRIVE_PARENT_FOLDER_ID: str = ""
    DRIVE_REQUEST_TIMEOUT: int = 120  # seconds

    # ==========================================
    # Frontend URL (for OAuth callbacks)
    # ==========================================
    FRONTEND_URL: str = "http://localhost:5173"

    # ==========================================
    # CORS (stored as comma-separated string, parsed to list)
    # ==========================================
    CORS_ORIGINS_STR: str = "http://localhost:5173,http://127.0.0.1:5173,http://localhost:3000"

    @property
    def CORS_ORIGINS(self) -> List[str]:
        """Parse CORS origins from comma-separated string, always including the frontend"""
        origins = parse_csv_list(self.CORS_ORIGINS_STR)
        if self.FRONTEND_URL and self.FRONTEND_URL not in origins:
            origins.append(self.FRONTEND_URL)
        return origins

    # ==========================================
    # Rate Limiting
    # ==========================================
    RATE_LIMIT_ENABLED: bool = True
    RATE_LIMIT_DEFAULT: str = "100/15 minutes"
    RATE_LIMIT_STORAGE_URI: str = "memory://"

    # ==========================================
    # File Upload
    # ==========================================
    MAX_UPLOAD_SIZE: int = 52428800  # 50MB per file
    MAX_FILES_PER_UPLOAD: int = 20
    MAX_REQUEST_SIZE: int = 1048576  # 1MB for JSON bodies; uploads are sized from the two limits above
    ALLOWED_EXTENSIONS_STR: str = (
        "pdf,doc,docx,ppt,pptx,xls,xlsx,txt,jpg,jpeg,png,gif,webp,zip,rar,7z,mp4,mp3"
    )

    @property
    def ALLOWED_EXTENSIONS(self) -> List[str]:
        """Parse allowed extensions from comma-separated string"""
        return parse_extensions(self.ALLOWED_EXTENSIONS_STR)

    # ==========================================
    # Access Codes
    # ==========================================
    ACCESS_CODE_BYTES: int = 4  # 8 hex characters
    ACCESS_CODE_WIDE_BYTES: int = 6  # 12 hex characters once the short space is crowded
    ACCESS_CODE_MAX_ATTEMPTS: int = 10

    # ==========================================
    # Analytics
    # ==========================================
    ANALYTICS_TOP_N: int = 5
    ANALYTICS_RECENT_ACTIVITY: int = 10

    # ==========================================
    # Logging
    # ==========================================
    LOG_LEVEL: str = "INFO"
    LOG_FILE: str = "logs/app.log"

    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "ignore"  # Ignore extra fields in .env that aren't defined in Settings

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        if self.LOG_FILE:
            Path(self.LOG_FILE).parent.mkdir(exist_ok=True, parents=True)

    def is_dev_mode(self) -> bool:
        """Check if running in development mode"""
        return self.ENVIRONMENT == "development" or self.DEBUG

    @property
    def google_oauth_configured(self) -> bool:
        return bool(self.GOOGLE_CLIENT_ID and self.GOOGLE_CLIENT_SECRET)

    @property
    def drive_configured(self) -> bool:
        if not self.DRIVE_UPLOADS_ENABLED:
            return False
        if self.DRIVE_SERVICE_ACCOUNT_FILE:
            return True
        return bool(self.DRIVE_CLIENT_ID and self.DRIVE_CLIENT_SECRET and self.DRIVE_REFRESH_TOKEN)


# Create settings instance
settings = Settings()
