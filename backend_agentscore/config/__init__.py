"""
Configuration management for the Backend AgentScore service.

Loads settings from environment variables and an optional .env file.
Exposes a single source of truth for RPC, storage, job cadence and API config.
"""

from backend_agentscore.config.settings import Settings, get_settings

__all__ = ["Settings", "get_settings"]
