"""
Data layer: SQLAlchemy models and the persistence contract used by the
business layer.
"""
