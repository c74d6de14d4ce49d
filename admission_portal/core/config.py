from typing import List, Optional

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    database_url: str = Field(..., alias="DATABASE_URL")

    jwt_secret_key: str = Field(..., alias="JWT_SECRET_KEY")
    jwt_algorithm: str = Field("HS256", alias="JWT_ALGORITHM")
    access_token_expire_minutes: int = Field(60, alias="ACCESS_TOKEN_EXPIRE_MINUTES")
    # bcrypt work factor; tests lower it
    bcrypt_rounds: int = Field(12, alias="BCRYPT_ROUNDS")

    super_admin_email: Optional[str] = Field(None, alias="SUPER_ADMIN_EMAIL")
    super_admin_password: Optional[str] = Field(None, alias="SUPER_ADMIN_PASSWORD")

    # Uploaded documents, contact attachments and hosted bundles
    storage_path: str = Field("storage/files", alias="STORAGE_PATH")
    # Used to build absolute URLs for stored files, e.g. https://portal.example.com
    public_base_url: str = Field("http://localhost:8000", alias="PUBLIC_BASE_URL")
    # inline: bundle bytes in the response; hosted: store and return {url, fileName, storageType}
    bundle_delivery: str = Field("inline", alias="BUNDLE_DELIVERY")
    max_upload_mb: int = Field(10, alias="MAX_UPLOAD_MB")

    recaptcha_secret_key: Optional[str] = Field(None, alias="RECAPTCHA_SECRET_KEY")
    recaptcha_verify_url: str = Field(
        "https://www.google.com/recaptcha/api/siteverify", alias="RECAPTCHA_VERIFY_URL"
    )
    recaptcha_min_score: float = Field(0.5, alias="RECAPTCHA_MIN_SCORE")

    contact_rate_limit: int = Field(5, alias="CONTACT_RATE_LIMIT")
    contact_rate_window_seconds: int = Field(900, alias="CONTACT_RATE_WINDOW_SECONDS")

    cors_origins: List[str] = Field(default_factory=lambda: ["*"], alias="CORS_ORIGINS")

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"


settings = Settings()
