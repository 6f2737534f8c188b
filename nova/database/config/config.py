"""
Configuration — Pydantic v2 Settings (env / .env)
=================================================

Purpose
-------
Centralized, strongly-typed application configuration using:
- Pydantic v2 `BaseSettings` for environment-driven values
- `pydantic-settings` v2 for `.env` loading and model config

Load Order & Behavior
---------------------
- Values are read from the environment; if not present, `.env` is used.
- Missing required fields raise a validation error at import time.
- `extra="ignore"`: unknown env vars are ignored (not an error).

Usage
-----
from nova.database.config.config import settings

# Example
rag_id = settings.AUTORAG_DEFAULT_RAG_ID
database_url = settings.database_url

Security
--------
- Never commit secrets or the `.env` file to source control.
- Prefer runtime environment variables in production (K8s/Secrets Manager/etc.).
"""

from typing import Literal, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict
from sqlalchemy.engine import URL


class Settings(BaseSettings):
    """
    Application configuration settings loaded from environment variables
    or a `.env` file. Provides strongly typed access to environment values.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Application
    FRONTEND_URL: str = Field("http://localhost:3000", description="Base URL of the frontend client application (CORS origin).")
    APP_BASE_URL: str = Field("http://localhost:3000", description="Public base URL used to build invitation links.")
    LOG_LEVEL: str = Field("INFO", description="Root log level for the `nova` loggers.")

    # Database
    DATABASE_URL: Optional[str] = Field(None, description="Full SQLAlchemy URL. When set, overrides the DB_* parts.")
    DB_DRIVER_NAME: str = Field("postgresql+psycopg2", description="Database driver (e.g., `postgresql+psycopg2`, `sqlite`).")
    DB_USERNAME: Optional[str] = Field(None, description="Database username credential.")
    DB_PASSWORD: Optional[str] = Field(None, description="Database password credential.")
    DB_HOST: Optional[str] = Field(None, description="Hostname or IP address of the database server.")
    DB_PORT: Optional[int] = Field(None, description="Port of the database server.")
    DB_DATABASE_NAME: Optional[str] = Field(None, description="Name of the application's database.")
    CREATE_TABLES: bool = Field(False, description="Create missing tables on startup (development only).")

    # Session tokens
    AUTH_SECRET_KEY: str = Field(..., description="Secret key for signing session tokens.")
    AUTH_ALGORITHM: str = Field("HS256", description="Algorithm used for JWT signing.")
    AUTH_COOKIE_NAME: str = Field("token", description="Cookie holding the session token.")
    ACCESS_TOKEN_EXPIRE_MINUTES: int = Field(60 * 24, description="Duration (in minutes) before session tokens expire.")

    # Invitations
    INVITE_SECRET_KEY: Optional[str] = Field(None, description="Secret for invitation tokens. Falls back to AUTH_SECRET_KEY.")
    INVITE_EXPIRE_DAYS: int = Field(7, description="Invitation token lifetime in days.")

    # Answer provider
    ANSWER_PROVIDER: Literal["autorag", "chat"] = Field("autorag", description="Which answer backend serves chat turns.")
    ANSWER_PROVIDER_TIMEOUT_SECONDS: float = Field(60.0, description="Timeout applied to answer provider HTTP calls.")
    OPEN_AI_MODEL: str = Field("gpt-4o-mini", description="Chat model name for the `chat` provider.")
    API_KEY: Optional[str] = Field(None, description="OpenAI (or compatible) API key for the `chat` provider.")
    OPENAI_BASE_URL: Optional[str] = Field(None, description="Optional OpenAI-compatible endpoint.")
    OPENAI_TEMPERATURE: float = Field(0.7, description="Sampling temperature for the `chat` provider.")
    CLOUDFLARE_ACCOUNT_ID: Optional[str] = Field(None, description="Cloudflare account hosting the AutoRAG instances.")
    CLOUDFLARE_AI_SEARCH_API_KEY: Optional[str] = Field(None, description="Bearer token for the AutoRAG REST API.")
    AUTORAG_DEFAULT_RAG_ID: Optional[str] = Field(None, description="AutoRAG instance used when a group has none.")
    AUTORAG_NATIVE_STREAMING: bool = Field(False, description="Ask AutoRAG for an SSE stream instead of re-chunking.")
    AUTORAG_CHUNK_DELAY_SECONDS: float = Field(0.01, description="Delay between re-chunked words.")
    STREAM_QUEUE_SIZE: int = Field(32, description="Fragments buffered between the provider and the HTTP writer.")

    # Object storage (S3-compatible, Cloudflare R2)
    R2_ENDPOINT_URL: Optional[str] = Field(None, description="S3-compatible endpoint, e.g. https://<account>.r2.cloudflarestorage.com.")
    R2_ACCESS_KEY_ID: Optional[str] = Field(None, description="Object storage access key ID.")
    R2_SECRET_ACCESS_KEY: Optional[str] = Field(None, description="Object storage secret access key.")
    BUCKET_NAME: str = Field("nova", description="Default bucket for uploaded documents.")
    REGION: str = Field("auto", description="Object storage region.")
    MAX_UPLOAD_BYTES: int = Field(10 * 1024 * 1024, description="Largest accepted document upload.")

    @property
    def database_url(self):
        """
        SQLAlchemy URL for the application database.

        Returns
        -------
        str | sqlalchemy.engine.URL
            `DATABASE_URL` when set, else a URL assembled with `URL.create(...)`.
        """
        if self.DATABASE_URL:
            return self.DATABASE_URL
        return URL.create(
            drivername=self.DB_DRIVER_NAME,
            username=self.DB_USERNAME,
            password=self.DB_PASSWORD,
            host=self.DB_HOST,
            port=self.DB_PORT,
            database=self.DB_DATABASE_NAME,
        )

    @property
    def invite_secret(self) -> str:
        return self.INVITE_SECRET_KEY or self.AUTH_SECRET_KEY


# Singleton instance of Settings, ready to be imported across the app
settings = Settings()
"""Defines a Settings object that contains the contents of the .env file"""
