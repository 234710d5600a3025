from datetime import timedelta

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="PELANGI_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    APP_NAME: str = "Guru Digital Pelangi"

    # DEV default, override with PELANGI_SECRET_KEY in any real deployment.
    SECRET_KEY: str = "change-me-in-production"
    JWT_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60
    BCRYPT_ROUNDS: int = 12

    DATABASE_URL: str = "sqlite:///./pelangi.db"
    LOG_LEVEL: str = "INFO"

    # "owner_only": only the creating teacher may touch an assignment.
    # "owner_or_admin": ADMIN may act on any assignment as well.
    ASSIGNMENT_OWNERSHIP: str = "owner_only"
    DEFAULT_ASSIGNMENT_POINTS: int = 100

    LEADERBOARD_LIMIT: int = 50
    SEED_DEFAULT_LEVELS: bool = True

    @property
    def access_token_expire(self) -> timedelta:
        return timedelta(minutes=self.ACCESS_TOKEN_EXPIRE_MINUTES)


settings = Settings()
