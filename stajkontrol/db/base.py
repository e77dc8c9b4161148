"""Base class for all database models."""

import uuid

from sqlalchemy import Column, DateTime, Enum, Uuid
from sqlalchemy.orm import DeclarativeBase, declared_attr

from stajkontrol.utils.helpers import utcnow


class Base(DeclarativeBase):
    """Base class for all models."""

    @declared_attr
    def __tablename__(cls) -> str:
        """Generate table name automatically."""
        return cls.__name__.lower() + "s"

    # Common columns for all tables
    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4, index=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)


def enum_column(enum_cls, **kwargs) -> Column:
    """Enum stored as its string value (VARCHAR + CHECK, not a native type)."""
    return Column(
        Enum(
            enum_cls,
            native_enum=False,
            length=32,
            values_callable=lambda members: [m.value for m in members],
            validate_strings=True,
        ),
        **kwargs,
    )
