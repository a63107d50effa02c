"""Persistence layer: SQLAlchemy models, sessions and CRUD operations."""
