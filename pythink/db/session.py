# pythink/db/session.py
from pathlib import Path

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from pythink.core.config import settings

# SQLite 需要特殊配置来处理多线程
_is_sqlite = settings.DATABASE_URL.startswith("sqlite")

if _is_sqlite and ":memory:" not in settings.DATABASE_URL:
    # sqlite:///./data/pythink.db -> ./data
    Path(settings.DATABASE_URL.split("///", 1)[-1]).parent.mkdir(parents=True, exist_ok=True)

engine = create_engine(
    settings.DATABASE_URL,
    connect_args={"check_same_thread": False} if _is_sqlite else {},
)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
