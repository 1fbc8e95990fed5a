"""FastAPI dependencies."""
from typing import Generator

from sqlalchemy.orm import Session

from apps.backend.database import get_session_factory


def get_db() -> Generator[Session, None, None]:
    factory = get_session_factory()
    sess = factory()
    try:
        yield sess
    finally:
        sess.close()


def get_queue():
    """Default RQ queue (import is lazy so tests never need Redis)."""
    from redis import Redis
    from rq import Queue
    from apps.backend.config import get_settings

    s = get_settings()
    return Queue(s.rq_default_queue_name, connection=Redis(host=s.redis_host, port=s.redis_port))
