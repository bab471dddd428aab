"""Database engine, models and schemas."""
