from datetime import datetime

from sqlalchemy import MetaData, TIMESTAMP, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

# Naming conventions keep constraint names stable across MySQL/PostgreSQL/SQLite
convention = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_N_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}

metadata = MetaData(naming_convention=convention)

class Base(DeclarativeBase):
    """Base class for SQLAlchemy ORM models."""
    metadata = metadata

class TimestampMixin:
    created_at: Mapped[datetime] = mapped_column(TIMESTAMP, nullable=False, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(TIMESTAMP, nullable=False, server_default=func.now(), onupdate=func.now())
