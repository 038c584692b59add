# chatrooms/core/config.py
import os
from typing import List, Literal
from dotenv import load_dotenv


def _as_bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


class Settings:
    """
    Setup environment variables.
        - DATABASE_URL the SQLAlchemy url of the persistence store
        - PUB_SUB_SERVICE the transport used for message fan-out:
          "local" (single instance), "redis" or "google_pub_sub"
        - MEDIA_ROOT the directory attachments are written to
        - APP_URL the public base url used to build attachment urls
        - REQUIRE_MEMBERSHIP_TO_SEND / REQUIRE_MEMBERSHIP_TO_SUBSCRIBE
          tighten the default "any authenticated user" rules
    """

    # Load environment variables from the .env file
    load_dotenv()

    APP_ENV: str = os.getenv("APP_ENV", "local")
    APP_URL: str = os.getenv("APP_URL", "http://localhost:8000").rstrip("/")
    CORS_ORIGINS: List[str] = [
        origin.strip() for origin in os.getenv("CORS_ORIGINS", "*").split(",") if origin.strip()
    ]

    DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite:///./chatrooms.db")

    JWT_SECRET: str = os.getenv("JWT_SECRET", "change-me")
    JWT_ALGORITHM: str = os.getenv("JWT_ALGORITHM", "HS256")
    ACCESS_TOKEN_EXPIRE_MINUTES: int = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "1440"))

    MEDIA_ROOT: str = os.getenv("MEDIA_ROOT", "./public")
    PAGE_SIZE: int = int(os.getenv("PAGE_SIZE", "10"))

    REQUIRE_MEMBERSHIP_TO_SEND: bool = _as_bool(os.getenv("REQUIRE_MEMBERSHIP_TO_SEND", "false"))
    REQUIRE_MEMBERSHIP_TO_SUBSCRIBE: bool = _as_bool(os.getenv("REQUIRE_MEMBERSHIP_TO_SUBSCRIBE", "false"))

    PUB_SUB_SERVICE: Literal["local", "redis", "google_pub_sub"] = os.getenv("PUB_SUB_SERVICE", "local")

    REDIS_HOST: str = os.getenv("REDIS_HOST", "localhost")
    REDIS_PORT: int = int(os.getenv("REDIS_PORT", "6379"))
    REDIS_ACCESS_KEY: str = os.getenv("REDIS_ACCESS_KEY", "")
    REDIS_SSL: bool = _as_bool(os.getenv("REDIS_SSL", "true"))

    PROJECT_ID = os.getenv("PROJECT_ID", "")
    TOPIC_ID = os.getenv("TOPIC_ID", "")
    SUBSCRIPTION_ID = os.getenv("SUBSCRIPTION_ID", "")

    @property
    def is_production(self) -> bool:
        return self.APP_ENV.lower() == "production"


settings = Settings()
