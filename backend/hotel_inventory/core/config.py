from pydantic_settings import BaseSettings
from typing import List
import os


class Settings(BaseSettings):
    env: str = "dev"
    secret_key: str = "change_me_super_secret"
    jwt_algorithm: str = "HS256"
    access_token_expire_minutes: int = 30
    refresh_token_expire_minutes: int = 60 * 24 * 30
    bcrypt_rounds: int = 12
    database_url: str = "postgresql+psycopg2://hoteluser:hotelpass@db:5432/hotel"
    tenant_header: str = "X-Tenant-ID"
    backend_cors_origins: str = "http://localhost:5173"
    log_level: str = "INFO"

    # Stock policy per call site: "reject" fails the operation when stock is short,
    # "clamp" floors the resulting quantity at zero.
    ledger_consumption_policy: str = "reject"
    stay_consumption_policy: str = "clamp"

    movement_page_size_max: int = 100
    movement_stats_window_days: int = 30
    movement_stats_top_actors: int = 10
    transfer_page_size_max: int = 100

    port: int = int(os.getenv("PORT", "8000"))

    @property
    def cors_origins(self) -> List[str]:
        """Parse CORS origins from comma-separated string"""
        origins = self.backend_cors_origins
        return [origin.strip() for origin in origins.split(",") if origin.strip()]

    class Config:
        env_file = ".env"
        case_sensitive = False


settings = Settings()
