from pydantic_settings import BaseSettings
from pydantic import Field


class Settings(BaseSettings):
    # App Config
    APP_NAME: str = "Status Page"
    APP_ENV: str = "development"
    PORT: int = 8000
    DEBUG: bool = True
    LOG_LEVEL: str = Field(default="INFO")

    # Database
    DATABASE_URL: str = "sqlite:///./status_page.db"

    # Dashboard origin allowed by CORS
    APP_URL: str = Field(default="http://localhost:3000")

    # Pagination
    DEFAULT_PAGE_LIMIT: int = Field(default=10)
    MAX_PAGE_LIMIT: int = Field(default=100)

    # Realtime
    WS_SEND_QUEUE_SIZE: int = Field(default=256)

    class Config:
        env_file = ".env"
        extra = "ignore"


settings = Settings()
