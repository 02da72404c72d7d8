from sqlalchemy import create_engine
from sqlalchemy.engine import make_url
from sqlalchemy.orm import sessionmaker

from safetyforms.core.config import settings

connect_args = {}
if make_url(settings.DATABASE_URL).get_backend_name() == "sqlite":
    connect_args["check_same_thread"] = False

engine = create_engine(settings.DATABASE_URL, pool_pre_ping=True, connect_args=connect_args)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def init_db() -> None:
    """Create tables that do not exist yet."""
    from safetyforms.db import models  # noqa: F401
    from safetyforms.db.base import Base

    Base.metadata.create_all(bind=engine)
