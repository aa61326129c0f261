import contextlib
import logging
from typing import Iterator

from sqlalchemy.orm import sessionmaker

from database.repositories.chunk_embedding import ChunkEmbeddingRepository

logger = logging.getLogger(__name__)


@contextlib.contextmanager
def chunk_uow(session_factory: sessionmaker) -> Iterator[ChunkEmbeddingRepository]:
    """Open a session from session_factory and hand out its chunk repository.

    The session is committed when the block exits cleanly. Any exception
    rolls it back (logged) and is re-raised to the caller.

        with chunk_uow(session_factory) as repo:
            repo.upsert_batch(rows)
    """
    session = session_factory()
    try:
        yield ChunkEmbeddingRepository(session)
        session.commit()
    except Exception as e:
        logger.debug(f"Rolling back chunk_embedding transaction: {e}")
        session.rollback()
        raise
    finally:
        session.close()
