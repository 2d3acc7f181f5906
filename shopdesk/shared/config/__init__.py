from . import settings
from .database import AsyncSessionLocal, Base, engine, get_db, init_models, utcnow

__all__ = ["settings", "AsyncSessionLocal", "Base", "engine", "get_db", "init_models", "utcnow"]
