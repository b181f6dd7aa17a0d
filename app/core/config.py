from typing import List, Optional
from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    SECRET_KEY: str
    REFRESH_SECRET_KEY: str
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 15
    REFRESH_TOKEN_EXPIRE_MINUTES: int = 60 * 24 * 14

    ENVIRONMENT: str = "development"  # "development" or "production"
    CORS_ORIGINS: List[str] = ["http://localhost:3000"]
    FRONTEND_URL: str = "http://localhost:3000"

    INVITATION_EXPIRE_DAYS: int = 7

    # Plan given to freshly registered tenants
    TRIAL_PLAN_SLUG: Optional[str] = "business"
    TRIAL_DAYS: int = 14

    @property
    def is_production(self):
        return self.ENVIRONMENT == "production"

    @property
    def access_token_expire_seconds(self):
        return self.ACCESS_TOKEN_EXPIRE_MINUTES * 60

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

settings = Settings()
