"""Thin API launcher.

Run with: uvicorn main:app --reload

Settings are read from TOKENAUTH_* environment variables when the app is
built here; tokenauth.app itself has no import-time side effects, so tests
build their own app with an injected TokenProvider.
"""

from tokenauth.app import create_app

app = create_app()

__all__ = ["app"]
