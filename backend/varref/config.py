"""Application configuration."""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Application
    app_name: str = "Variable Reference Engine"
    debug: bool = True

    # Server
    host: str = "0.0.0.0"
    port: int = 8000
    frontend_port: int = 5173

    # Variable catalog service
    catalog_base_url: str = "http://localhost:3001/api"
    catalog_path: str = "/variables"
    catalog_timeout: float = 10.0  # seconds per request
    catalog_max_retries: int = 3
    catalog_retry_wait_min: float = 0.5
    catalog_retry_wait_max: float = 5.0

    # Identifiers
    short_id_length: int = 4

    # Editor re-synchronization
    edit_debounce_ms: int = 300
    paste_debounce_ms: int = 100

    # CORS - dynamically built based on frontend_port
    cors_origins: list[str] = []

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
    )

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        if not self.cors_origins:
            self.cors_origins = [
                f"http://localhost:{self.frontend_port}",
                f"http://127.0.0.1:{self.frontend_port}",
            ]


settings = Settings()
