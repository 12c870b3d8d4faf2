from __future__ import annotations
import os
from pydantic import BaseModel

class Settings(BaseModel):
    environment: str = os.getenv("ENVIRONMENT", "dev")
    app_name: str = os.getenv("APP_NAME", "questboard-api")
    app_display_name: str = os.getenv("APP_DISPLAY_NAME", "Questboard")
    app_version: str = os.getenv("APP_VERSION", "0.1.0")
    git_sha: str = os.getenv("GIT_SHA", "dev")
    cors_origins: list[str] = os.getenv("CORS_ORIGINS", "*").split(",")
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    database_url: str = os.getenv("DATABASE_URL", "postgresql+asyncpg://postgres:postgres@db:5432/questboard_dev")
    redis_url: str = os.getenv("REDIS_URL", "redis://redis:6379/0")
    notifications_queue: str = os.getenv("NOTIFICATIONS_QUEUE", "notifications")

    # Object storage (MinIO speaks the S3 API)
    s3_endpoint: str = os.getenv("S3_ENDPOINT", "http://minio:9000")
    s3_access_key: str = os.getenv("S3_ACCESS_KEY", "minioadmin")
    s3_secret_key: str = os.getenv("S3_SECRET_KEY", "minioadmin")
    s3_bucket_uploads: str = os.getenv("S3_BUCKET_UPLOADS", "questboard-uploads-dev")
    s3_public_base_url: str = os.getenv("S3_PUBLIC_BASE_URL", "http://localhost:9000")

    # Submission uploads
    max_upload_bytes: int = int(os.getenv("MAX_UPLOAD_BYTES", str(10 * 1024 * 1024)))
    max_image_files: int = int(os.getenv("MAX_IMAGE_FILES", "5"))

    # Stripe configuration
    stripe_secret_key: str = os.getenv("STRIPE_SECRET_KEY", "")
    stripe_webhook_secret: str = os.getenv("STRIPE_WEBHOOK_SECRET", "")
    badge_currency: str = os.getenv("BADGE_CURRENCY", "usd")
    app_url: str = os.getenv("APP_URL", "http://localhost:3000")  # checkout return pages

settings = Settings()
