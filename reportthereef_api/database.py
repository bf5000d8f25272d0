import logging
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from .config import get_settings
# Re-export SQLAlchemy Base from models so test and app code can create tables
from .models import Base

logger = logging.getLogger(__name__)

DATABASE_URL = get_settings().database_url


def _engine_kwargs(url: str) -> dict:
    if not url.startswith('sqlite'):
        return {}
    kwargs = {'connect_args': {'check_same_thread': False}}
    # A single shared connection so every request thread sees the same in-memory DB
    if ':memory:' in url or url.rstrip('/').endswith(':'):
        kwargs['poolclass'] = StaticPool
    return kwargs


engine = create_engine(DATABASE_URL, future=True, **_engine_kwargs(DATABASE_URL))
SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False)


def init_db():
    """Create any missing tables."""
    logger.info('Initialising database at %s', engine.url.render_as_string(hide_password=True))
    Base.metadata.create_all(bind=engine)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
