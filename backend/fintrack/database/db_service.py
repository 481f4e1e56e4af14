"""
Database Service Layer - PostgreSQL interface
"""
from typing import List, Optional, Dict, Any, Union, Iterable, Sequence
from datetime import datetime
from sqlalchemy.orm import Session
from sqlalchemy import and_
import uuid
import logging

from fintrack.database.models import (
    Account as AccountModel,
    Transaction as TransactionModel,
    Category as CategoryModel,
    Budget as BudgetModel,
    AccountTypeEnum, BudgetPeriodEnum
)

logger = logging.getLogger(__name__)

# Collection to model mapping
COLLECTION_MODEL_MAP = {
    "accounts": AccountModel,
    "transactions": TransactionModel,
    "categories": CategoryModel,
    "budgets": BudgetModel,
}

# Default ordering used by find() when the caller does not pass one.
# A leading "-" means descending.
COLLECTION_DEFAULT_ORDER = {
    "accounts": ["name"],
    "categories": ["name"],
    "budgets": ["name"],
    "transactions": ["-date", "-created_at"],
}

# String values coerced to enum members on write
COLLECTION_ENUM_FIELDS = {
    "accounts": {"account_type": AccountTypeEnum},
    "budgets": {"time_period": BudgetPeriodEnum},
}

DEFAULT_BATCH_SIZE = 500


class DatabaseService:
    """Database service for PostgreSQL operations."""

    def __init__(self, session: Session, batch_size: int = DEFAULT_BATCH_SIZE):
        """
        Initialize database service.

        Args:
            session: SQLAlchemy session (required)
            batch_size: Maximum number of ids touched by one bulk statement
        """
        if session is None:
            raise ValueError("Session is required")
        self.session = session
        self.batch_size = batch_size

    def _get_model(self, collection: str):
        model_class = COLLECTION_MODEL_MAP.get(collection)
        if not model_class:
            raise ValueError(f"Unknown collection: {collection}")
        return model_class

    def _model_to_dict(self, model_instance) -> Dict[str, Any]:
        """Convert SQLAlchemy model instance to dictionary."""
        if model_instance is None:
            return None

        result = {}
        for column in model_instance.__table__.columns:
            value = getattr(model_instance, column.name)
            # Convert datetime to ISO format string
            if isinstance(value, datetime):
                value = value.isoformat()
            # Convert enums to string
            elif hasattr(value, 'value'):
                value = value.value
            result[column.name] = value
        return result

    def _coerce_enums(self, collection: str, data: Dict[str, Any]):
        for field, enum_class in COLLECTION_ENUM_FIELDS.get(collection, {}).items():
            value = data.get(field)
            if isinstance(value, str):
                data[field] = enum_class(value.lower())

    def _build_query_filters(self, model_class, query: Dict[str, Any]):
        """Build SQLAlchemy filter conditions from query dict."""
        filters = []
        for key, value in query.items():
            if not hasattr(model_class, key):
                continue
            column = getattr(model_class, key)
            if isinstance(value, (list, tuple, set)):
                filters.append(column.in_(list(value)))
            else:
                filters.append(column == value)
        return filters

    def _build_ordering(self, model_class, order_by: Sequence[str]):
        clauses = []
        for field in order_by:
            descending = field.startswith("-")
            column = getattr(model_class, field.lstrip("-"))
            clauses.append(column.desc() if descending else column.asc())
        return clauses

    def _as_query(self, document_id_or_query: Union[str, Dict[str, Any]]) -> Dict[str, Any]:
        if isinstance(document_id_or_query, str):
            return {"id": document_id_or_query}
        return document_id_or_query

    def insert(self, collection: str, document: Dict[str, Any]) -> Dict[str, Any]:
        """Insert a document into the collection."""
        model_class = self._get_model(collection)
        document = dict(document)

        if 'id' not in document:
            document['id'] = str(uuid.uuid4())

        if 'created_at' not in document and hasattr(model_class, 'created_at'):
            document['created_at'] = datetime.utcnow()

        self._coerce_enums(collection, document)

        instance = model_class(**document)
        self.session.add(instance)
        self.session.flush()

        return self._model_to_dict(instance)

    def find(
        self,
        collection: str,
        query: Optional[Dict[str, Any]] = None,
        order_by: Optional[Sequence[str]] = None
    ) -> List[Dict[str, Any]]:
        """Find documents matching the query, in the collection's default order."""
        model_class = self._get_model(collection)

        q = self.session.query(model_class)

        if query:
            filters = self._build_query_filters(model_class, query)
            if filters:
                q = q.filter(and_(*filters))

        if order_by is None:
            order_by = COLLECTION_DEFAULT_ORDER.get(collection, [])
        ordering = self._build_ordering(model_class, order_by)
        if ordering:
            q = q.order_by(*ordering)

        return [self._model_to_dict(r) for r in q.all()]

    def find_one(self, collection: str, query: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """Find the first document matching the query."""
        model_class = self._get_model(collection)

        q = self.session.query(model_class)
        filters = self._build_query_filters(model_class, query)

        if filters:
            q = q.filter(and_(*filters))

        result = q.first()
        return self._model_to_dict(result) if result else None

    def update(self, collection: str, document_id_or_query: Union[str, Dict[str, Any]],
               update_data: Dict[str, Any] = None) -> int:
        """Update documents matching the query."""
        if update_data is None:
            raise ValueError("update_data is required")

        model_class = self._get_model(collection)
        query = self._as_query(document_id_or_query)
        update_data = dict(update_data)

        q = self.session.query(model_class)
        filters = self._build_query_filters(model_class, query)

        if filters:
            q = q.filter(and_(*filters))

        if 'updated_at' not in update_data and hasattr(model_class, 'updated_at'):
            update_data['updated_at'] = datetime.utcnow()

        self._coerce_enums(collection, update_data)

        count = q.update(update_data, synchronize_session=False)
        self.session.flush()

        return count

    def delete(self, collection: str, document_id_or_query: Union[str, Dict[str, Any]]) -> int:
        """Delete documents matching the query."""
        model_class = self._get_model(collection)
        query = self._as_query(document_id_or_query)

        q = self.session.query(model_class)
        filters = self._build_query_filters(model_class, query)

        if filters:
            q = q.filter(and_(*filters))

        count = q.delete(synchronize_session=False)
        self.session.flush()

        return count

    def delete_many(self, collection: str, query: Dict[str, Any]) -> int:
        """Delete multiple documents matching the query."""
        return self.delete(collection, query)

    def _batches(self, ids: Iterable[str]) -> Iterable[List[str]]:
        unique_ids = list(dict.fromkeys(ids))
        for start in range(0, len(unique_ids), self.batch_size):
            yield unique_ids[start:start + self.batch_size]

    def bulk_update(self, collection: str, ids: Iterable[str], update_data: Dict[str, Any]) -> int:
        """Apply the same partial update to every id, one statement per batch."""
        total = 0
        for batch in self._batches(ids):
            total += self.update(collection, {"id": batch}, update_data)
        logger.info("Bulk updated %s %s record(s)", total, collection)
        return total

    def bulk_delete(self, collection: str, ids: Iterable[str]) -> int:
        """Delete every id, one statement per batch."""
        total = 0
        for batch in self._batches(ids):
            total += self.delete(collection, {"id": batch})
        logger.info("Bulk deleted %s %s record(s)", total, collection)
        return total

    def count(self, collection: str, query: Optional[Dict[str, Any]] = None) -> int:
        """Count documents matching the query."""
        return len(self.find(collection, query))


def get_db_service(session: Session) -> DatabaseService:
    """
    Get database service instance.

    Args:
        session: SQLAlchemy session (required)

    Returns:
        DatabaseService instance
    """
    from fintrack.config import settings
    return DatabaseService(session, batch_size=settings.BULK_WRITE_BATCH_SIZE)
