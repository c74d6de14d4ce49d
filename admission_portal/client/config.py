from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings


class ClientSettings(BaseSettings):
    """Admin client configuration, read from PORTAL_* environment variables."""

    api_url: str = Field("http://localhost:8000", alias="PORTAL_API_URL")
    api_token: Optional[str] = Field(None, alias="PORTAL_API_TOKEN")
    timeout_seconds: float = Field(30.0, alias="PORTAL_TIMEOUT_SECONDS")
    bundle_timeout_seconds: float = Field(120.0, alias="PORTAL_BUNDLE_TIMEOUT_SECONDS")
    export_timeout_seconds: float = Field(300.0, alias="PORTAL_EXPORT_TIMEOUT_SECONDS")
    recaptcha_timeout_seconds: float = Field(5.0, alias="PORTAL_RECAPTCHA_TIMEOUT_SECONDS")

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"


client_settings = ClientSettings()
