"""Persistence: SQLAlchemy-backed entity store and cacheable model mixin."""
