"""Application configuration."""

from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,  # so DB_HOST works regardless of case
        extra="ignore",
    )

    # Database fields (read from .env)
    db_host: str = "localhost"
    db_port: int = 5432
    db_name: str = "leadflow"
    db_user: str = "postgres"
    db_password: str = "postgres"

    # OpenAI (or compatible API)
    openai_api_key: str = ""
    openai_model: str = "gpt-4o-mini"
    openai_base_url: str | None = None  # For Azure/OpenRouter

    # Company research (Tavily search API)
    tavily_api_key: str = ""

    # Slack lead-alerts intake
    slack_signing_secret: str = ""
    slack_lead_channel_id: str = "C05B5QBJVAM"
    slack_lead_bot_id: str = "B02JNJTTULW"

    # CRM / meeting lookups (panel data, optional)
    hubspot_access_token: str = ""
    hubspot_portal_id: str = "20020304"
    fireflies_api_key: str = ""

    # Optional markdown product reference appended to LLM prompts
    product_reference_path: str | None = None

    # Sales roster, JSON list of {name, email, slack_id, title, region, group}
    sales_team: list[dict] = []

    http_timeout_seconds: float = 30.0

    # Pipeline gates (tunable, see DESIGN.md)
    pipeline_hard_floor: int = 40
    pipeline_borderline_ceiling: int = 70
    pipeline_admission_floor: int = 50
    pipeline_max_attempts: int = 3
    pipeline_retry_base_delay: float = 1.0

    # App
    log_level: str = "INFO"


settings = Settings()
