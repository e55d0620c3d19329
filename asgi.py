"""
asgi.py -- ASGI entry point for the login service.

Run with:  uvicorn asgi:app --reload
           python main.py

Kept separate from api/main.py so process launchers have one stable import
path ("asgi:app") regardless of how the api/ package is laid out.
"""

from api.main import app

__all__ = ["app"]
