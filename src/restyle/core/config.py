"""Application configuration using Pydantic BaseSettings."""

import logging
from enum import Enum
from pathlib import Path

import structlog
from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class FailurePolicy(str, Enum):
    """What happens to a design record after its job fails."""

    DELETE = "delete"
    RETAIN = "retain"


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Application Environment
    app_env: str = Field(default="development", alias="APP_ENV")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    # Local persistence: metadata database + image blobs
    data_dir: Path = Field(default=Path("./data"), alias="DATA_DIR")
    database_url: str = Field(default="", alias="DATABASE_URL")

    # Coze design workflow
    coze_api_token: str = Field(default="", alias="COZE_API_TOKEN")
    coze_workflow_id: str = Field(default="", alias="COZE_WORKFLOW_ID")
    coze_base_url: str = Field(
        default="https://api.coze.cn/v1/workflow/run", alias="COZE_BASE_URL"
    )

    # Cloudinary asset upload
    cloudinary_cloud_name: str = Field(default="", alias="CLOUDINARY_CLOUD_NAME")
    cloudinary_api_key: str = Field(default="", alias="CLOUDINARY_API_KEY")
    cloudinary_api_secret: str = Field(default="", alias="CLOUDINARY_API_SECRET")
    cloudinary_folder: str = Field(default="coze_interior_designs", alias="CLOUDINARY_FOLDER")

    # Upload image preparation
    max_upload_dimension: int = Field(default=1024, gt=0, alias="MAX_UPLOAD_DIMENSION")
    upload_jpeg_quality: int = Field(default=70, ge=1, le=95, alias="UPLOAD_JPEG_QUALITY")

    # HTTP timeouts (seconds)
    upload_timeout_seconds: float = Field(default=60.0, gt=0, alias="UPLOAD_TIMEOUT_SECONDS")
    generation_timeout_seconds: float = Field(
        default=300.0, gt=0, alias="GENERATION_TIMEOUT_SECONDS"
    )
    download_timeout_seconds: float = Field(default=60.0, gt=0, alias="DOWNLOAD_TIMEOUT_SECONDS")

    # Failed job handling
    failed_design_policy: FailurePolicy = Field(
        default=FailurePolicy.DELETE, alias="FAILED_DESIGN_POLICY"
    )
    failed_design_grace_seconds: float = Field(
        default=2.0, ge=0, alias="FAILED_DESIGN_GRACE_SECONDS"
    )

    @property
    def blob_dir(self) -> Path:
        """Directory holding original_<id> and generated_<id> image files."""
        return self.data_dir / "images"

    @property
    def resolved_database_url(self) -> str:
        """DATABASE_URL if set, otherwise a SQLite file inside DATA_DIR."""
        if self.database_url:
            return self.database_url
        return f"sqlite:///{self.data_dir / 'designs.db'}"

    @model_validator(mode="after")
    def validate_required_config(self) -> "Settings":
        """Validate required configuration on startup.

        Fails fast with a list of every missing credential so a misconfigured
        deployment is caught before the first job is submitted.

        Validation is skipped in test environments.
        """
        if self.app_env in ("test", "testing"):
            return self

        missing = []

        if not self.coze_api_token:
            missing.append("COZE_API_TOKEN: Personal access token for the Coze workflow API")

        if not self.coze_workflow_id:
            missing.append("COZE_WORKFLOW_ID: Identifier of the interior design workflow")

        if not self.cloudinary_cloud_name:
            missing.append("CLOUDINARY_CLOUD_NAME: Cloud name from the Cloudinary console")

        if not self.cloudinary_api_key:
            missing.append("CLOUDINARY_API_KEY: API key from the Cloudinary console")

        if not self.cloudinary_api_secret:
            missing.append("CLOUDINARY_API_SECRET: API secret used to sign uploads")

        if missing:
            error_msg = "CRITICAL: Missing required environment variables:\n\n" + "\n".join(
                f"  - {m}" for m in missing
            )
            error_msg += "\n\nThe application cannot start without these variables."
            error_msg += "\nPlease update your .env file and restart."
            raise ValueError(error_msg)

        return self


def configure_logging(settings: Settings) -> None:
    """Configure structlog based on application environment.

    - Production: JSON output for log aggregation
    - Development: Console output for human readability
    """
    level = logging.getLevelNamesMapping().get(settings.log_level.upper(), logging.INFO)

    if settings.app_env == "production":
        # JSON output for production (log aggregation)
        processors = [
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        processors = [
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.dev.ConsoleRenderer(),
        ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        # Uncached under test: pytest swaps stdout between tests
        cache_logger_on_first_use=settings.app_env not in ("test", "testing"),
    )
