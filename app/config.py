from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    app_name: str = "one-time-gist-uploader"
    app_env: str = "dev"
    log_level: str = "INFO"
    database_path: str = "data/tokens.db"

    admin_password: str | None = None
    github_token: str | None = None
    github_api_url: str = "https://api.github.com"
    github_timeout_seconds: float = 30.0
    gist_description: str = "Uploaded via One-Time Gist Uploader"

    token_ttl_seconds: int = 24 * 60 * 60
    token_length: int = 10
    binary_preview_chars: int = 100
    max_upload_size_bytes: int = 10 * 1024 * 1024
    max_files: int = 300

    model_config = SettingsConfigDict(env_file=".env", env_prefix="GISTDROP_")

    def missing_secrets(self) -> list[str]:
        missing = []
        if not self.admin_password:
            missing.append("GISTDROP_ADMIN_PASSWORD")
        if not self.github_token:
            missing.append("GISTDROP_GITHUB_TOKEN")
        return missing


@lru_cache
def get_settings() -> Settings:
    return Settings()
