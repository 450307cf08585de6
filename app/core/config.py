from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    APP_NAME: str = "Book Catalog API"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False

    # Database
    DATABASE_URL: str = "sqlite+aiosqlite:///./books.db"

    # Logging
    LOG_LEVEL: str = "INFO"

    # Request policy
    MAX_BODY_BYTES: int = 1048576
    QUERY_TIMEOUT_SECONDS: float = 5.0
    SEARCH_QUERY_MAX_LENGTH: int = 200

    # Rate limiting (disabled unless a limiter is configured)
    RATE_LIMIT_ENABLED: bool = False
    RATE_LIMIT_REQUESTS: int = 100
    RATE_LIMIT_WINDOW_SECONDS: int = 60
    CLIENT_IP_HEADER: str = "cf-connecting-ip"

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": True,
    }


settings = Settings()
