"""
Dataset Server Web Blueprints Package.

This package contains Flask Blueprints for modular route organization.
"""

from web.blueprints.dataset import dataset_bp

__all__ = ["dataset_bp"]
