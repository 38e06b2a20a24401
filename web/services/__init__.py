"""
Dataset Server Services Package.

This package contains service layer modules that encapsulate business logic,
separating it from Flask routes for better testability and maintainability.

ARCHITECTURE RULE:
- Services may ONLY import from core/* modules (plus flask.current_app)
- Services MUST NOT import directly from utils/ or learners/
"""

from web.services import dataset_service

__all__ = [
    "dataset_service",
]
