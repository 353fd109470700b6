"""
API route modules.
"""

from homepanel.api.routes import admin, auth, devices, family, health, logs, rooms, users

__all__ = ["admin", "auth", "devices", "family", "health", "logs", "rooms", "users"]
