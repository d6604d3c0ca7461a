"""
Microsoft Graph access for user management.
"""

from .client import GraphClient, GraphError, build_user_body

__all__ = ["GraphClient", "GraphError", "build_user_body"]
