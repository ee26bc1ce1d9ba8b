"""Database engine, session scope and table definitions."""
