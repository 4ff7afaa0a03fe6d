import os
from dotenv import load_dotenv

load_dotenv()


class Config:
    """Application configuration loaded from environment variables."""

    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-change-me")

    # Database — defaults to SQLite, overridable via DATABASE_URL for PostgreSQL
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", "sqlite:///imagehost.db"
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # PostgreSQL connection pooling (ignored by SQLite)
    SQLALCHEMY_ENGINE_OPTIONS = {
        "pool_pre_ping": True,
    }

    # Uploads
    MAX_CONTENT_LENGTH = 5 * 1024 * 1024  # 5 MB
    ALLOWED_EXTENSIONS = {"jpg", "jpeg", "png", "gif"}
    HISTORY_LIMIT = int(os.environ.get("HISTORY_LIMIT", 50))

    # Every stored object gets this extension, whatever was uploaded
    CONTENT_KEY_EXTENSION = os.environ.get("CONTENT_KEY_EXTENSION", "png")

    # Object storage (any S3-compatible service)
    STORAGE_ENDPOINT = os.environ.get("STORAGE_ENDPOINT", "localhost:9000")
    STORAGE_ACCESS_KEY = os.environ.get("STORAGE_ACCESS_KEY", "")
    STORAGE_SECRET_KEY = os.environ.get("STORAGE_SECRET_KEY", "")
    STORAGE_BUCKET = os.environ.get("STORAGE_BUCKET", "images")
    STORAGE_DOMAIN = os.environ.get("STORAGE_DOMAIN", "http://localhost:9000/images")
    STORAGE_REGION = os.environ.get("STORAGE_REGION", "us-east-1")
    STORAGE_SECURE = os.environ.get("STORAGE_SECURE", "false").lower() == "true"
    STORAGE_UPLOAD_TOKEN_EXPIRES = int(
        os.environ.get("STORAGE_UPLOAD_TOKEN_EXPIRES", 3600)
    )

    PORT = int(os.environ.get("PORT", 3000))
