"""
Database engine and session management.

Builds the SQLAlchemy engine from environment configuration with a SQLite
in-memory fallback for pytest, and exposes the ``get_db`` FastAPI dependency.
"""
import os
import sys

from dotenv import load_dotenv
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

load_dotenv()


def _get_database_url() -> str:
    if os.getenv("DATABASE_URL"):
        return os.getenv("DATABASE_URL")

    # Otherwise, generate from individual components (all must be set)
    db_user = os.getenv("POSTGRES_USER")
    db_password = os.getenv("POSTGRES_PASSWORD")
    db_host = os.getenv("POSTGRES_HOST")
    db_port = os.getenv("POSTGRES_PORT")
    db_name = os.getenv("POSTGRES_DB")

    if not all([db_user, db_password, db_host, db_port, db_name]):
        missing = [
            name
            for name, value in (
                ("POSTGRES_USER", db_user),
                ("POSTGRES_PASSWORD", db_password),
                ("POSTGRES_HOST", db_host),
                ("POSTGRES_PORT", db_port),
                ("POSTGRES_DB", db_name),
            )
            if not value
        ]
        raise ValueError(f"Missing required database environment variables: {', '.join(missing)}")

    return f"postgresql://{db_user}:{db_password}@{db_host}:{db_port}/{db_name}"


def _is_pytest_runtime() -> bool:
    """Detect that we're executing under pytest.

    ``PYTEST_CURRENT_TEST`` is only set while a test runs, so module import
    during collection is detected through ``sys.modules`` instead.
    """
    if os.getenv("PYTEST_RUNNING") == "1":
        return True
    if "PYTEST_CURRENT_TEST" in os.environ:
        return True
    return "pytest" in sys.modules


# Test override order:
# 1. ACTIFY_TEST_DB
# 2. TEST_DATABASE_URL (e2e fixtures pointing at a real Postgres)
# 3. in-memory sqlite when running under pytest
# Production configuration is only read when none of these apply.
explicit_test_db = os.getenv("ACTIFY_TEST_DB")
explicit_e2e_db = os.getenv("TEST_DATABASE_URL")

if explicit_test_db:
    DATABASE_URL = explicit_test_db
    _engine_kwargs = {"connect_args": {"check_same_thread": False}} if DATABASE_URL.startswith("sqlite") else {}
elif explicit_e2e_db:
    DATABASE_URL = explicit_e2e_db
    _engine_kwargs = {}
elif _is_pytest_runtime():
    # StaticPool so the in-memory schema is shared by every connection
    DATABASE_URL = "sqlite+pysqlite:///:memory:"
    _engine_kwargs = {
        "connect_args": {"check_same_thread": False},
        "poolclass": StaticPool,
    }
else:
    DATABASE_URL = _get_database_url()
    _engine_kwargs = {"pool_pre_ping": True}

engine = create_engine(DATABASE_URL, **_engine_kwargs)

# An in-memory database starts empty on every process; create the schema eagerly.
if DATABASE_URL.startswith("sqlite") and ":memory:" in DATABASE_URL:
    from actify.db import models  # local import to avoid circular import at module load

    models.Base.metadata.create_all(bind=engine)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db():
    """Dependency to get a database session."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
