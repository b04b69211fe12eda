from pydantic_settings import BaseSettings, SettingsConfigDict
from functools import lru_cache
from typing import List, Optional

class Settings(BaseSettings):
    """
    Settings for Hireveno.

    Please do not modify this file directly.
    Instead, create a .env file in the root directory of the project
    and specify the settings you would like to change there.
    For example, if you would like to use a redis server, add the following
    line to the .env file:
    - USE_REDIS=True.

    Some settings are required to be set in the .env file, such as:
    - SECRET_KEY (the JWT secret shared with the auth provider)
    - FLUTTERWAVE_SECRET_KEY
    - FLUTTERWAVE_PUBLIC_KEY

    The above values are sensitive and should never be pushed to GitHub so
    that is why they need to be set as environment variables.

    SUMMARY:
    - Override settings (if needed) using a .env file
    - Never push the .env file to GitHub (it should be in .gitignore)
    - Required .env settings are SECRET_KEY, FLUTTERWAVE_SECRET_KEY and FLUTTERWAVE_PUBLIC_KEY
    """

    # Application settings
    app_name: str = "Hireveno"
    app_version: str = "0.1.0"
    app_host: str = "127.0.0.1"
    app_port: int = 8000

    # Local vs production settings
    local: bool = True # Default to local development
    cors_origins: List[str] = ["*"]

    # Token settings (tokens are issued by the auth provider, we only verify them)
    secret_key: str
    hash_algorithm: str = "HS256"

    # Logs settings
    logs_dir: str = "logs"

    # Database settings
    db_url: str = "sqlite:///hireveno_db.db" # Default, for local development

    # Redis settings
    use_redis: bool = False # Default to not using Redis, change this to True if you have a Redis server set up
    redis_host: str = "localhost"
    redis_port: int = 6379
    redis_password: Optional[str] = None

    # Rate limiting
    rate_limit_enabled: bool = True

    # Flutterwave settings
    flutterwave_public_key: str = ""
    flutterwave_secret_key: str = ""
    flutterwave_base_url: str = "https://api.flutterwave.com/v3"
    flutterwave_webhook_hash: str = "" # Empty disables the verif-hash check
    flutterwave_timeout_seconds: int = 30
    currency: str = "NGN"

    # Marketplace rules
    tutor_payout_ratio: float = 0.70
    min_withdrawal_amount: int = 50000 # kobo (500 NGN)
    quiz_pass_mark: int = 70
    quiz_retry_hours: int = 24
    quiz_question_limit: int = 15

    # Session sweeper
    session_sweeper_enabled: bool = True
    session_sweep_interval_seconds: int = 60

    # Load settings from .env file
    model_config = SettingsConfigDict(env_file=".env")

@lru_cache() # Cache settings to avoid reading .env file multiple times
def get_settings():
    """
    Use this function as a dependency to get the settings object.
    Dependency injection will make it easier to test endpoints with different settings, simply inject a different settings object.
    """
    return Settings()
