import base64
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    app_name: str = "CrimeSleuth AI"
    secret_key: str
    jwt_alg: str = "HS256"
    access_token_expire_minutes: int = 30
    refresh_token_expire_minutes: int = 43200
    password_reset_expire_minutes: int = 10
    app_aes_key_base64: str
    database_url: str = "sqlite:///./crimesleuth.db"
    log_level: str = "INFO"

    # Evidence file storage
    storage_dir: str = "storage"
    max_file_size: int = 25 * 1024 * 1024  # 25MB
    allowed_mime_types: list[str] = [
        "application/pdf",
        "image/jpeg",
        "image/png",
        "audio/mpeg",
        "video/mp4",
        "text/plain"
    ]

    # ML analysis service
    ml_server_url: str = "http://localhost:8000"
    ml_timeout_seconds: float = 60.0
    ml_health_timeout_seconds: float = 5.0

    # Case listing
    default_page_limit: int = 10
    max_page_limit: int = 100

    # CORS_ORIGINS: comma-separated list of exact origins
    cors_origins: str = "http://localhost:3000,http://127.0.0.1:3000"
    cors_origin_regex: str = ""

    # Optional email settings for password reset
    smtp_host: str | None = None
    smtp_port: int | None = None
    smtp_username: str | None = None
    smtp_password: str | None = None
    smtp_use_tls: bool = True
    mail_from: str | None = None

    # Frontend base URL to build reset links (e.g., http://localhost:3000)
    frontend_base_url: str | None = None

    # Formspree (optional alternative to SMTP)
    formspree_form_id: str | None = None
    formspree_api_key: str | None = None

    model_config = SettingsConfigDict(env_file=".env")

    @property
    def aes_key(self) -> bytes:
        """Decode the base64 AES key to bytes"""
        return base64.b64decode(self.app_aes_key_base64)

    @property
    def cors_origin_list(self) -> list[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]


settings = Settings()
