"""
API package - FastAPI routes and schemas.
"""

from reachflow.api.routes import executions

__all__ = ["executions"]
