"""Database layer: ORM models and engine construction."""
