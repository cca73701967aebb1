"""Database base classes, engine management and ORM listeners."""
