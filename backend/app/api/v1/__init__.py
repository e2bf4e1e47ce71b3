"""
API v1 Module
Contains all version 1 API endpoints.
"""

# Expose routers for easy import
from app.api.v1 import analytics, auth, clients, elements, error_logs, health, roles, stores, users

__all__ = ["analytics", "auth", "clients", "elements", "error_logs", "health", "roles", "stores", "users"]
