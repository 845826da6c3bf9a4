"""
docmgr HTTP layer — FastAPI app, dependencies, schemas and route modules.
"""

from docmgr.api.app import create_app

__all__ = ["create_app"]
