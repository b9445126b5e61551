"""
Configuration Settings.
"""

from pydantic_settings import BaseSettings
from typing import Optional


class Settings(BaseSettings):
    """Application settings."""

    # App info
    app_name: str = "Workdesk"
    app_version: str = "1.0.0"
    debug: bool = True

    # Security (tokens are issued by the auth provider, we only verify them)
    secret_key: str = "your-secret-key-change-this-in-production"
    algorithm: str = "HS256"
    access_token_expire_minutes: int = 60 * 24 * 7  # 7 days

    # Storage
    storage_type: str = "local"
    local_storage_path: str = "./data"

    # LLM Provider settings
    llm_provider: str = "openai"  # "openai" or "azure"
    llm_api_key: Optional[str] = None
    llm_model: Optional[str] = None  # model name, or deployment name for azure
    llm_base_url: Optional[str] = None  # endpoint for azure
    llm_api_version: str = "2024-08-01-preview"  # azure only
    llm_max_tokens: int = 2000
    llm_timeout: float = 120.0

    # Credits
    free_tier_credits: int = 100
    chat_history_limit: int = 10

    # Billing webhook (payment provider)
    billing_webhook_secret: Optional[str] = None
    pro_product_ids: str = ""  # comma separated

    # CORS
    cors_origins: list[str] = [
        "http://localhost:3000",
        "http://localhost:5173",
        "http://127.0.0.1:3000",
    ]

    # Logging configuration
    log_level: str = "INFO"  # DEBUG, INFO, WARNING, ERROR, CRITICAL
    log_file_path: str = "./logs/workdesk.log"
    log_file_enabled: bool = True
    log_console_enabled: bool = True
    log_json_format: bool = True  # JSON format for files, human-readable for console
    log_api_requests: bool = True
    log_llm_calls: bool = True

    class Config:
        env_file = ".env"
        case_sensitive = False

    @property
    def pro_product_id_set(self) -> set[str]:
        """Normalized set of product ids that grant the unlimited plan."""
        return {
            product_id.strip().lower()
            for product_id in self.pro_product_ids.split(",")
            if product_id.strip()
        }


settings = Settings()
