# pythink/db/init_db.py
from pythink.db.base import Base
from pythink.db.session import engine


def init_db():
    Base.metadata.create_all(bind=engine)
