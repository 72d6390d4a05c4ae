import logging
import os
from dataclasses import dataclass, field
from typing import List, Optional

from dotenv import load_dotenv

load_dotenv()

logging.basicConfig(
    level=logging.DEBUG if os.getenv("DEBUG", "").lower() in ("1", "true", "yes") else logging.INFO,
    format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
)

logger = logging.getLogger("museum_backend")

AI_PROVIDERS = ("openai", "vertex", "mock")
STORAGE_TYPES = ("gcs", "mock", "auto")


@dataclass
class Settings:
    # ---- database ----
    database_url: str = ""
    db_host: str = ""
    db_port: int = 5432
    db_name: str = ""
    db_user: str = ""
    db_password: str = ""
    db_secret_id: str = ""

    # ---- google cloud ----
    project_id: str = ""
    region: str = "us-central1"

    # ---- storage ----
    storage_type: str = "auto"
    gcs_bucket_name: str = ""
    storage_base_url: str = "http://localhost:8000/storage"

    # ---- ai collaborators ----
    ai_provider: str = "mock"
    text_model: str = "gpt-4o-mini"
    image_model: str = "dall-e-3"
    llm_timeout: Optional[float] = 120.0

    # ---- auth ----
    jwt_secret: str = ""
    jwt_expires_hours: int = 24
    admin_emails: List[str] = field(default_factory=list)

    # ---- http ----
    cors_origins: List[str] = field(default_factory=lambda: ["*"])
    port: int = 8000

    theme_templates_path: str = ""
    debug: bool = False

    @property
    def resolved_storage_type(self) -> str:
        if self.storage_type == "auto":
            return "gcs" if self.gcs_bucket_name else "mock"
        return self.storage_type

    def validate(self) -> "Settings":
        """
        Rejects inconsistent combinations before any collaborator gets built.
        """
        if self.ai_provider not in AI_PROVIDERS:
            raise ValueError(f"AI_PROVIDER must be one of {', '.join(AI_PROVIDERS)}, got '{self.ai_provider}'")
        if self.storage_type not in STORAGE_TYPES:
            raise ValueError(f"STORAGE_TYPE must be one of {', '.join(STORAGE_TYPES)}, got '{self.storage_type}'")
        if self.storage_type == "gcs" and not self.gcs_bucket_name:
            raise ValueError("STORAGE_TYPE=gcs requires GCS_BUCKET_NAME")
        if not self.jwt_secret:
            raise ValueError("JWT_SECRET is required")
        if self.jwt_expires_hours <= 0:
            raise ValueError("JWT_EXPIRES_HOURS must be positive")
        if not self.database_url and not (self.db_host and self.db_name and self.db_user):
            raise ValueError("Either DATABASE_URL or DB_HOST/DB_NAME/DB_USER must be set")
        if self.ai_provider == "vertex" and not self.project_id:
            raise ValueError("AI_PROVIDER=vertex requires PROJECT_ID")
        return self


def _env_bool(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def load_settings() -> Settings:
    """
    Reads the process environment (after .env) into a validated Settings.
    Raises ValueError when the configuration cannot work.
    """
    timeout_raw = os.getenv("LLM_TIMEOUT", "120")
    cors_raw = os.getenv("CORS_ORIGINS", "*")

    settings = Settings(
        database_url=os.getenv("DATABASE_URL", ""),
        db_host=os.getenv("DB_HOST", ""),
        db_port=int(os.getenv("DB_PORT", "5432")),
        db_name=os.getenv("DB_NAME", ""),
        db_user=os.getenv("DB_USER", ""),
        db_password=os.getenv("DB_PASSWORD", ""),
        db_secret_id=os.getenv("DB_SECRET_ID", ""),
        project_id=os.getenv("PROJECT_ID", os.getenv("GOOGLE_CLOUD_PROJECT", "")),
        region=os.getenv("GOOGLE_CLOUD_REGION", "us-central1"),
        storage_type=os.getenv("STORAGE_TYPE", "auto").strip().lower(),
        gcs_bucket_name=os.getenv("GCS_BUCKET_NAME", ""),
        storage_base_url=os.getenv("STORAGE_BASE_URL", "http://localhost:8000/storage").rstrip("/"),
        ai_provider=os.getenv("AI_PROVIDER", "mock").strip().lower(),
        text_model=os.getenv("TEXT_MODEL", "gpt-4o-mini"),
        image_model=os.getenv("IMAGE_MODEL", "dall-e-3"),
        llm_timeout=float(timeout_raw) if timeout_raw else None,
        jwt_secret=os.getenv("JWT_SECRET", ""),
        jwt_expires_hours=int(os.getenv("JWT_EXPIRES_HOURS", "24")),
        admin_emails=[e.strip().lower() for e in os.getenv("ADMIN_EMAILS", "").split(",") if e.strip()],
        cors_origins=[o.strip() for o in cors_raw.split(",") if o.strip()],
        port=int(os.getenv("PORT", "8000")),
        theme_templates_path=os.getenv("THEME_TEMPLATES_PATH", ""),
        debug=_env_bool("DEBUG"),
    )
    settings.validate()
    logger.info(
        f"[CONFIG] ai_provider={settings.ai_provider} storage={settings.resolved_storage_type} "
        f"db={'url' if settings.database_url else settings.db_host}"
    )
    return settings
