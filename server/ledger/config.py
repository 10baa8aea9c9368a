from decimal import Decimal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    DATABASE_URL: str = "sqlite+pysqlite:///./ledger.db"
    SECRET_KEY: str = "ledger-dev-secret"
    JWT_ALGORITHM: str = "HS256"
    # Tokens are issued by the identity service; this API only verifies them.
    TOKEN_URL: str = "http://localhost:9000/oauth/token"
    CORS_ORIGINS: list[str] = ["http://localhost:5173", "http://127.0.0.1:5173"]
    LOG_LEVEL: str = "INFO"

    DEFAULT_CURRENCY: str = "EUR"
    BALANCE_TOLERANCE: Decimal = Decimal("0.005")
    CONCURRENCY_RETRIES: int = 3
    ALLOW_REVERSAL_OF_REVERSAL: bool = True
    NUMBER_PADDING: int = 4
    NUMBER_SEPARATOR: str = "-"

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


settings = Settings()
