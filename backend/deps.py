"""Shared FastAPI dependencies used across route modules."""

from database import SessionLocal
from llm_service import llm_service


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_backend():
    return llm_service
