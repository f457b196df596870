"""
Database Service Layer - collection-style interface over the ORM models
"""
from typing import List, Optional, Dict, Any, Union
from datetime import datetime, date
from sqlalchemy.orm import Session
from sqlalchemy import and_
import uuid
import logging

from app.database.models import (
    User as UserModel,
    UserSettings as UserSettingsModel,
    Category as CategoryModel,
    Transaction as TransactionModel,
    MonthHistory as MonthHistoryModel,
    YearHistory as YearHistoryModel,
    ChatMessage as ChatMessageModel,
    TransactionKindEnum,
    PreferredViewEnum,
)

logger = logging.getLogger(__name__)

# Collection to model mapping
COLLECTION_MODEL_MAP = {
    "users": UserModel,
    "user_settings": UserSettingsModel,
    "categories": CategoryModel,
    "transactions": TransactionModel,
    "month_history": MonthHistoryModel,
    "year_history": YearHistoryModel,
    "chat_messages": ChatMessageModel,
}

# Enum-backed columns per collection
ENUM_FIELDS = {
    "categories": {"type": TransactionKindEnum},
    "transactions": {"type": TransactionKindEnum},
    "user_settings": {"preferred_view": PreferredViewEnum},
}


class DatabaseService:
    """Database service for ORM-backed collections."""

    def __init__(self, session: Session):
        """
        Initialize database service.

        Args:
            session: SQLAlchemy session (required)
        """
        if session is None:
            raise ValueError("Session is required")
        self.session = session

    def _model_class(self, collection: str):
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
            # Convert datetime/date to ISO format string
            if isinstance(value, (datetime, date)):
                value = value.isoformat()
            # Convert enums to string
            elif hasattr(value, 'value'):
                value = value.value
            result[column.name] = value
        return result

    def _coerce_enums(self, collection: str, document: Dict[str, Any]) -> Dict[str, Any]:
        """Convert enum strings to enum types (case-insensitive)."""
        for field, enum_class in ENUM_FIELDS.get(collection, {}).items():
            value = document.get(field)
            if value is None or isinstance(value, enum_class):
                continue
            # Schema enums (str mixins) carry the raw value in .value
            value = getattr(value, "value", value)
            document[field] = enum_class(str(value).lower())
        return document

    def _build_query_filters(self, model_class, query: Dict[str, Any]):
        """Build SQLAlchemy filter conditions from query dict."""
        filters = []
        for key, value in query.items():
            if hasattr(model_class, key):
                filters.append(getattr(model_class, key) == value)
        return filters

    def _filtered_query(self, collection: str, query: Optional[Dict[str, Any]]):
        model_class = self._model_class(collection)
        q = self.session.query(model_class)
        if query:
            filters = self._build_query_filters(model_class, self._coerce_enums(collection, dict(query)))
            if filters:
                q = q.filter(and_(*filters))
        return model_class, q

    def insert(self, collection: str, document: Dict[str, Any]) -> Dict[str, Any]:
        """Insert a document into the collection."""
        model_class = self._model_class(collection)
        document = dict(document)

        # Add ID if not present
        if 'id' not in document:
            document['id'] = str(uuid.uuid4())

        # Add created_at timestamp only if the model has this field
        if 'created_at' not in document and hasattr(model_class, 'created_at'):
            document['created_at'] = datetime.utcnow()

        self._coerce_enums(collection, document)

        # Create model instance
        instance = model_class(**document)
        self.session.add(instance)
        self.session.flush()

        return self._model_to_dict(instance)

    def find(self, collection: str, query: Optional[Dict[str, Any]] = None,
             order_by: Optional[str] = None, descending: bool = False) -> List[Dict[str, Any]]:
        """Find documents matching the query."""
        model_class, q = self._filtered_query(collection, query)

        if order_by:
            column = getattr(model_class, order_by)
            q = q.order_by(column.desc() if descending else column.asc())

        results = q.all()
        return [self._model_to_dict(r) for r in results]

    def find_range(self, collection: str, query: Optional[Dict[str, Any]], field: str,
                   start: Optional[Any] = None, end: Optional[Any] = None,
                   order_by: Optional[str] = None, descending: bool = False) -> List[Dict[str, Any]]:
        """Find documents matching the query whose ``field`` lies in [start, end] (bounds optional)."""
        model_class, q = self._filtered_query(collection, query)
        column = getattr(model_class, field)

        if start is not None:
            q = q.filter(column >= start)
        if end is not None:
            q = q.filter(column <= end)

        order_column = getattr(model_class, order_by or field)
        q = q.order_by(order_column.desc() if descending else order_column.asc())

        return [self._model_to_dict(r) for r in q.all()]

    def find_one(self, collection: str, query: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """Find the first document matching the query."""
        _, q = self._filtered_query(collection, query)
        result = q.first()
        return self._model_to_dict(result) if result else None

    def update(self, collection: str, document_id_or_query: Union[str, Dict[str, Any]],
               update_data: Dict[str, Any] = None) -> int:
        """Update documents matching the query."""
        if update_data is None:
            raise ValueError("update_data is required")

        model_class = self._model_class(collection)

        # Build query
        if isinstance(document_id_or_query, str):
            query = {"id": document_id_or_query}
        else:
            query = document_id_or_query

        _, q = self._filtered_query(collection, query)
        update_data = self._coerce_enums(collection, dict(update_data))

        # Add updated_at timestamp
        if 'updated_at' not in update_data and hasattr(model_class, 'updated_at'):
            update_data['updated_at'] = datetime.utcnow()

        count = q.update(update_data, synchronize_session=False)
        self.session.flush()

        return count

    def increment(self, collection: str, key: Dict[str, Any], deltas: Dict[str, float]) -> int:
        """
        Add ``deltas`` to numeric columns of the document identified by ``key``,
        creating it with the deltas as initial values when it does not exist.

        The increment is expressed in SQL (column = column + delta) so that
        concurrent writers do not lose updates.

        Returns:
            1 when an existing document was updated, 0 when one was created
        """
        model_class, q = self._filtered_query(collection, key)

        values = {
            getattr(model_class, field): getattr(model_class, field) + delta
            for field, delta in deltas.items()
        }
        count = q.update(values, synchronize_session=False)
        self.session.flush()

        if count:
            return count

        self.insert(collection, {**key, **deltas})
        return 0

    def delete(self, collection: str, document_id_or_query: Union[str, Dict[str, Any]]) -> int:
        """Delete documents matching the query."""
        # Build query
        if isinstance(document_id_or_query, str):
            query = {"id": document_id_or_query}
        else:
            query = document_id_or_query

        _, q = self._filtered_query(collection, query)

        count = q.delete(synchronize_session=False)
        self.session.flush()

        return count

    def delete_many(self, collection: str, query: Dict[str, Any]) -> int:
        """Delete multiple documents matching the query."""
        return self.delete(collection, query)

    def count(self, collection: str, query: Optional[Dict[str, Any]] = None) -> int:
        """Count documents matching the query."""
        _, q = self._filtered_query(collection, query)
        return q.count()


def get_db_service(session: Session) -> DatabaseService:
    """
    Get database service instance.

    Args:
        session: SQLAlchemy session (required)

    Returns:
        DatabaseService instance
    """
    return DatabaseService(session)
