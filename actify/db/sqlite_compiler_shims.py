"""SQLite compilation shims for PostgreSQL-specific column types.

Tests run against an in-memory SQLite database, so JSONB columns are compiled
to plain JSON there. Only ``Base.metadata.create_all()`` needs to succeed;
JSONB operators are never used by the application queries.

Imported for side-effects by actify.db.models.base.
"""
from __future__ import annotations

from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.ext.compiler import compiles


@compiles(JSONB, "sqlite")
def _compile_jsonb_sqlite(element, compiler, **kw):  # pragma: no cover - trivial
    return "JSON"
