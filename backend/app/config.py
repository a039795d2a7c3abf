from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

DATA_DIR = Path(__file__).parent.parent / "data"


class Settings(BaseSettings):
    """Application settings loaded from environment variables or .env file."""

    database_url: str = f"sqlite+aiosqlite:///{DATA_DIR}/nutrition.db"

    # Bootstrap nutritionist account, created on first startup.
    admin_email: str = "admin@example.com"
    admin_password: str = "admin12345"
    admin_full_name: str = "Nutritionist"

    session_ttl_hours: int = 24

    # Transactional email (Resend HTTP API). Empty key disables delivery.
    resend_api_key: str = ""
    resend_api_url: str = "https://api.resend.com/emails"
    mail_from: str = "Nutrition Coaching <onboarding@resend.dev>"
    brand_name: str = "Nutrition Coaching"
    app_url: str = "http://localhost:8501"

    cors_origins: list[str] = ["*"]
    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


settings = Settings()
