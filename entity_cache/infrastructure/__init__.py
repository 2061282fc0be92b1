"""Infrastructure: cache backends and the SQLAlchemy entity store."""
