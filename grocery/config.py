from typing import List, Optional
from urllib.parse import quote_plus

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    env: str = "local"
    debug: bool = False
    log_level: str = "INFO"

    database_uri: Optional[str] = None
    postgres_user: str = "postgres"
    postgres_password: str = "postgres"
    postgres_db: str = "grocery"
    postgres_host: str = "localhost"
    postgres_port: str = "5432"

    secret_key: str
    algorithm: str = "HS256"
    access_token_expire_minutes: int = 60 * 24

    stripe_secret_key: str
    stripe_webhook_secret: str
    stripe_currency: str = "usd"

    brevo_api_key: str = ""
    mail_from: str = "no-reply@grocery.local"
    store_name: str = "Grocery Store"
    admin_email: Optional[str] = None
    frontend_url: str = "http://localhost:3000"

    password_reset_expire_minutes: int = 60
    profile_otp_expire_minutes: int = 10
    profile_otp_max_attempts: int = 5

    cors_origins: List[str] = [
        "http://localhost:3000",
        "http://localhost:5173",
        "http://127.0.0.1:5173",
    ]

    @property
    def database_url(self):
        if self.database_uri:
            return self.database_uri

        encoded_password = quote_plus(self.postgres_password)
        return (
            f"postgresql+psycopg2://{self.postgres_user}:"
            f"{encoded_password}@{self.postgres_host}:"
            f"{self.postgres_port}/{self.postgres_db}"
        )

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "allow"


settings = Settings()
