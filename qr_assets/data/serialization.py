"""
Serialization mixin for SQLAlchemy models.
Provides to_dict() so business and service layers can hand out plain
snapshots of rows without leaking session-bound instances.
"""

import enum
from datetime import datetime
from sqlalchemy import inspect


class SerializationMixin:
    """Mixin adding to_dict() to a mapped model"""

    def to_dict(self, include_fields=None):
        """
        Convert model instance to dictionary

        Args:
            include_fields (iterable, optional): Restrict output to these column keys

        Returns:
            dict: Column values; datetimes as ISO strings, enums as their values
        """
        result = {}
        mapper = inspect(self.__class__)

        for column in mapper.columns:
            if include_fields is not None and column.key not in include_fields:
                continue
            value = getattr(self, column.key)

            if isinstance(value, datetime):
                result[column.key] = value.isoformat()
            elif isinstance(value, enum.Enum):
                result[column.key] = value.value
            else:
                result[column.key] = value

        return result
