"""
Database package initialization.

The package is split into:
- base: declarative base and mixins
- models: ORM models for users, books and orders
- connection: async engine, session factory and FastAPI dependency
- seed: demo data loader for local development

Submodules are imported explicitly where needed to avoid circular imports.
"""

__all__ = []
