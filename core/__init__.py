"""
Dataset Server Core Package.

This package contains the core business logic of the application,
separated from the web layer. All filesystem mutations, command handling,
change notification and job orchestration are coordinated through core
modules.

ARCHITECTURE RULES:
- core/ modules may only import from:
  - Python standard library
  - utils/ (path layout helpers)
  - learners/ (training/verification backends)
  - config (for global configuration)

- core/ modules MUST NOT import from:
  - web/ (no Flask dependencies)
  - flask, flask_socketio, werkzeug, or any web-specific packages

- All new business logic should be placed here, not in web/
"""

__all__ = [
    "commands",
    "dataset_store",
    "errors",
    "job_orchestrator",
    "mutation_handlers",
    "notification_bus",
    "project_locks",
]
