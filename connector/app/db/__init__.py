"""
Request log persistence (SQLAlchemy async).
"""

from .models import Base, LogRecord
from .crud import LogStore, get_log_store

__all__ = ["Base", "LogRecord", "LogStore", "get_log_store"]
