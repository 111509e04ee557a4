# intermeet/core/config.py
import os
from typing import Literal
from dotenv import load_dotenv


class Settings:
    """
    Setup environment variables.
        - PUB_SUB_SERVICE how room events fan out: "local" (in-process) or "redis"
        - AUTH_JWT_SECRET / AUTH_JWT_AUDIENCE verify bearer tokens from the auth provider
        - LIVEKIT_API_KEY / LIVEKIT_API_SECRET sign session grants for the media platform
        - DATA_FILE optional JSON snapshot of the store (empty = memory only)
    """

    # Load environment variables from the .env file
    load_dotenv()

    PUB_SUB_SERVICE: Literal["local", "redis"] = os.getenv("PUB_SUB_SERVICE", "local")

    REDIS_HOST: str = os.getenv("REDIS_HOST", "localhost")
    REDIS_PORT: int = int(os.getenv("REDIS_PORT", "6379"))
    REDIS_ACCESS_KEY: str = os.getenv("REDIS_ACCESS_KEY", "")
    REDIS_SSL: bool = os.getenv("REDIS_SSL", "false").lower() == "true"

    AUTH_JWT_SECRET: str = os.getenv("AUTH_JWT_SECRET", "dev-auth-secret")
    AUTH_JWT_AUDIENCE: str = os.getenv("AUTH_JWT_AUDIENCE", "authenticated")

    LIVEKIT_URL: str = os.getenv("LIVEKIT_URL", "ws://localhost:7880")
    LIVEKIT_API_KEY: str = os.getenv("LIVEKIT_API_KEY", "devkey")
    LIVEKIT_API_SECRET: str = os.getenv("LIVEKIT_API_SECRET", "devsecret")
    SESSION_GRANT_TTL_SECONDS: int = int(os.getenv("SESSION_GRANT_TTL_SECONDS", str(6 * 3600)))

    ROOM_MAX_AGE_HOURS: int = int(os.getenv("ROOM_MAX_AGE_HOURS", "24"))
    DEFAULT_MAX_PARTICIPANTS: int = int(os.getenv("DEFAULT_MAX_PARTICIPANTS", "50"))
    EXPIRY_SWEEP_INTERVAL_SECONDS: int = int(os.getenv("EXPIRY_SWEEP_INTERVAL_SECONDS", "300"))

    RATE_LIMIT_MAX: int = int(os.getenv("RATE_LIMIT_MAX", "10"))
    RATE_LIMIT_WINDOW_SECONDS: int = int(os.getenv("RATE_LIMIT_WINDOW_SECONDS", "60"))

    DATA_FILE: str = os.getenv("DATA_FILE", "")

    CORS_ORIGINS: list[str] = [
        origin.strip()
        for origin in os.getenv("CORS_ORIGINS", "http://localhost:3000").split(",")
        if origin.strip()
    ]

settings = Settings()
