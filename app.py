"""
App assembly entry point.

Re-exports the FastAPI `app` from `actify.api.main` so `uvicorn app:app`
keeps working from the project root.
"""

from actify.api.main import app  # noqa: F401
