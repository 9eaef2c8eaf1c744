"""
Generic data insertion mixin for SQLAlchemy models
Provides from_dict and to_dict methods used by the JSON API and the debug data loader
"""

from app import db
from datetime import datetime
from sqlalchemy import inspect
from app.utils.logger import get_logger

logger = get_logger("ops_console.domain.core.data_insertion")

AUDIT_FIELDS = ('created_at', 'updated_at', 'created_by')


class DataInsertionMixin:
    """
    Mixin that provides generic data insertion capabilities for SQLAlchemy models

    This mixin adds:
    - from_dict(): Create model instance from dictionary
    - to_dict(): Convert model instance to dictionary
    - create_from_dict(): Create and stage a model instance from dictionary
    """

    @classmethod
    def from_dict(cls, data_dict, actor=None, skip_fields=None):
        """
        Create a model instance from a dictionary

        Args:
            data_dict (dict): Dictionary containing model data
            actor (str, optional): Name recorded in created_by
            skip_fields (list, optional): Fields to skip during creation

        Returns:
            Model instance (not saved to database)
        """
        if skip_fields is None:
            skip_fields = []

        mapper = inspect(cls)
        columns = {c.key for c in mapper.columns}

        filtered_data = {}
        for key, value in data_dict.items():
            if key not in columns or key in skip_fields:
                continue
            if key in ('created_at', 'updated_at') and value is None:
                continue
            filtered_data[key] = value

        instance = cls(**filtered_data)

        if actor is not None and hasattr(instance, 'created_by') and not instance.created_by:
            instance.created_by = actor

        return instance

    def to_dict(self, include_relationships=False, include_audit_fields=True):
        """
        Convert model instance to dictionary

        Args:
            include_relationships (bool): Whether to include relationship data
            include_audit_fields (bool): Whether to include audit fields

        Returns:
            dict: Dictionary representation of the model
        """
        result = {}
        mapper = inspect(self.__class__)

        for column in mapper.columns:
            if not include_audit_fields and column.key in AUDIT_FIELDS:
                continue
            value = getattr(self, column.key)
            if isinstance(value, datetime):
                result[column.key] = value.isoformat()
            else:
                result[column.key] = value

        if include_relationships:
            for relationship in mapper.relationships:
                if relationship.key in result:
                    continue
                related = getattr(self, relationship.key)
                if related is None:
                    result[relationship.key] = None
                elif relationship.uselist:
                    result[relationship.key] = [
                        r.to_dict(include_audit_fields=include_audit_fields) for r in related
                    ]
                elif hasattr(related, 'to_dict'):
                    result[relationship.key] = related.to_dict(include_audit_fields=include_audit_fields)
                else:
                    result[relationship.key] = str(related)

        return result

    @classmethod
    def create_from_dict(cls, data_dict, actor=None, skip_fields=None, commit=True):
        """
        Create and save a model instance from dictionary

        Args:
            data_dict (dict): Dictionary containing model data
            actor (str, optional): Name recorded in created_by
            skip_fields (list, optional): Fields to skip during creation
            commit (bool): Whether to commit the transaction (otherwise only flushed)

        Returns:
            Model instance
        """
        instance = cls.from_dict(data_dict, actor, skip_fields)

        try:
            db.session.add(instance)
            if commit:
                db.session.commit()
                logger.info(f"Created {cls.__name__}: {instance}")
            else:
                db.session.flush()
            return instance
        except Exception as e:
            db.session.rollback()
            logger.error(f"Error creating {cls.__name__}: {e}")
            raise
