"""
Create tables from SQLAlchemy models on a fresh database (local dev).
Production databases should use `alembic upgrade head`.
"""
from app.database import engine, Base
from app import models  # noqa: F401 - register all models with Base

Base.metadata.create_all(bind=engine)
print("Tables created (or already exist).")
