import logging

from sqlalchemy import delete, func, select
from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)


class BaseRepository:
    """Session-bound access to a model whose rows are scoped by a namespace column."""

    model = None

    def __init__(self, db: Session):
        self.db = db

    def count(self, namespace: str) -> int:
        stmt = select(func.count()).select_from(self.model).where(self.model.namespace == namespace)
        return int(self.db.execute(stmt).scalar() or 0)

    def delete_namespace(self, namespace: str) -> int:
        result = self.db.execute(delete(self.model).where(self.model.namespace == namespace))
        deleted = result.rowcount or 0
        logger.info(f"Deleted {deleted} {self.model.__tablename__} rows from namespace {namespace}")
        return deleted
