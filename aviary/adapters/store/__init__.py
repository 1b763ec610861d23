"""Relational store adapters.

Services depend on ``AbstractCatalogStore``; ``SqlAlchemyCatalogStore`` is
the async SQLAlchemy implementation used by the application container.
"""
