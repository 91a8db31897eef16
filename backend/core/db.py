"""Shared SQLAlchemy metadata and engine access."""

from __future__ import annotations

from functools import lru_cache

import sqlalchemy as sa
from sqlalchemy.engine import Engine, create_engine

from backend.core.config import settings

# Naming conventions for consistent constraint/index names
NAMING_CONVENTION = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}

METADATA = sa.MetaData(naming_convention=NAMING_CONVENTION)


@lru_cache(maxsize=1)
def get_engine() -> Engine:
    """Process-wide engine built from ``settings.database_url``.

    Also used as a FastAPI dependency so tests can override it.
    """
    return create_engine(settings.database_url, future=True, pool_pre_ping=True)


def ensure_engine(engine: Engine | None) -> Engine:
    return engine or get_engine()
