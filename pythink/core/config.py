# pythink/core/config.py
from typing import List

from pydantic_settings import BaseSettings


# Answer-seeking phrases scanned in student AI chat messages.
# Bump CHEATING_KEYWORDS_VERSION whenever this list changes.
DEFAULT_CHEATING_KEYWORDS = [
    "답 알려",
    "정답 알려",
    "코드 줘",
    "답 줘",
    "정답 줘",
    "코드 알려",
    "전체 코드",
    "완성 코드",
    "복사",
    "답이 뭐",
    "정답이 뭐",
    "풀이 알려",
]


class Settings(BaseSettings):
    PROJECT_NAME: str = "PyThink Classroom"

    # Database
    DATABASE_URL: str = "sqlite:///./data/pythink.db"

    # JWT Authentication
    SECRET_KEY: str = "change-me-in-production-use-random-string"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24 * 7  # 7 days

    CORS_ORIGINS: List[str] = [
        "http://localhost:5173",
        "http://127.0.0.1:5173",
    ]

    LOG_LEVEL: str = "INFO"

    # Redis (summary queue)
    REDIS_URL: str = "redis://localhost:6379/0"

    # LLM
    OPENAI_API_KEY: str | None = None
    OPENAI_MODEL: str = "gpt-4o-mini"
    COACH_MAX_TOKENS: int = 800
    SUMMARY_MAX_TOKENS: int = 400
    GENERATION_MAX_TOKENS: int = 4096
    ANALYSIS_MAX_TOKENS: int = 1500

    # Dashboard heuristics
    STRUGGLING_THRESHOLD: float = 0.3
    CHEATING_KEYWORDS_VERSION: str = "2024-1"
    CHEATING_KEYWORDS: List[str] = DEFAULT_CHEATING_KEYWORDS

    # Classroom defaults
    DEFAULT_AI_LEVEL: int = 2
    DEFAULT_DAILY_AI_LIMIT: int = 0  # 0 = unlimited

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


settings = Settings()
