from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, declarative_base

from .config import CONFIG

connect_args = {"check_same_thread": False} if CONFIG["DATABASE_URL"].startswith("sqlite") else {}
engine = create_engine(CONFIG["DATABASE_URL"], connect_args=connect_args)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()


def init_db(bind=None):
    # Models must be registered on Base.metadata before create_all.
    from . import models  # noqa: F401
    Base.metadata.create_all(bind=bind or engine)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
