from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    PROJECT_NAME: str = "LinkedIn Signal Pipeline"
    API_V1_STR: str = "/api/v1"
    CORS_ORIGIN: str = "http://localhost:3000"
    LOG_LEVEL: str = "INFO"
    DATABASE_URL: str

    # Shared secret for the scheduler trigger and the stage endpoints
    CRON_SECRET: str = ""

    # Apify LinkedIn post scraper
    APIFY_TOKEN: str = ""
    APIFY_SCRAPER_ACTOR: str = "curious_coder/linkedin-post-search-scraper"

    # Google Gemini (embeddings + generation)
    GEMINI_API_KEY: str = ""
    GEMINI_MODEL_NAME: str = "gemini-2.5-flash"
    GEMINI_EMBEDDING_MODEL: str = "gemini-embedding-001"

    # Telegram bot used for insight delivery and admin alerts
    TELEGRAM_BOT_TOKEN: str = ""
    TELEGRAM_API_BASE: str = "https://api.telegram.org"

    # Pipeline orchestration
    PIPELINE_BASE_URL: str = "http://127.0.0.1:8000"  # Where the controller reaches the stage endpoints
    PIPELINE_TRIGGER_HOUR_UTC: int = 4
    PIPELINE_BATCH_SIZE: int = 10
    PIPELINE_MAX_RETRIES: int = 3
    PIPELINE_MAX_CHAIN_STEPS: int = 500

    # Retrieval
    VECTOR_NAMESPACE: str = "default"
    RETRIEVAL_TOP_K: int = 10

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore"
    )

settings = Settings()
