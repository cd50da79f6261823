"""Configuration for the realtime notification client.

Settings come from environment variables (optionally via a `.env` file):
1. Loaded once at startup into a typed settings model
2. Cached in memory for fast access
3. Exposed as a dict through `get_config`, with dotted lookups
"""

import asyncio
import logging
import os
from typing import Any, Dict, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError

from ayursutra.clients.socketio_client import resolve_server_url

logger = logging.getLogger(__name__)

ENV_PREFIX = "AYURSUTRA_"


class RealtimeSettings(BaseModel):
    """Typed view of the client configuration."""

    page_origin: str = "http://localhost:5173"
    realtime_port: int = 8000
    api_url: Optional[str] = None
    log_level: str = "INFO"
    reconnection_delay: float = Field(0.8, gt=0)
    reconnection_delay_max: float = Field(3.0, gt=0)
    connect_timeout: float = Field(20.0, gt=0)
    disconnect_grace: float = Field(1.5, ge=0)
    status_poll_interval: float = Field(5.0, ge=0)
    max_notifications: int = Field(50, ge=1)
    auth_token: Optional[str] = None
    email: Optional[str] = None
    password: Optional[str] = None

    class Config:
        validate_assignment = True

    @property
    def server_url(self) -> str:
        return resolve_server_url(self.page_origin, self.realtime_port)

    @property
    def api_base_url(self) -> str:
        return self.api_url or f"{self.server_url}/api"


class ConfigSingleton:
    """Configuration singleton backed by the process environment."""

    _instance = None
    _settings: Optional[RealtimeSettings] = None
    _config: Dict[str, Any] = {}
    _lock = asyncio.Lock()
    _initialized = False

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super(ConfigSingleton, cls).__new__(cls)
        return cls._instance

    @classmethod
    async def initialize(cls, overrides: Optional[Dict[str, Any]] = None) -> RealtimeSettings:
        """Load settings from `.env` and the environment.

        Args:
            overrides: Values that take precedence over the environment

        Returns:
            The loaded settings
        """
        if cls._initialized:
            return cls._settings

        async with cls._lock:
            if cls._initialized:
                return cls._settings

            logger.info("Initializing configuration from environment...")
            load_dotenv()

            values = cls._read_environment()
            values.update(overrides or {})
            try:
                settings = RealtimeSettings(**values)
            except ValidationError as e:
                logger.error(f"Invalid configuration: {e}")
                raise

            cls._settings = settings
            cls._config = {
                **settings.model_dump(exclude={"password", "auth_token"}),
                "server_url": settings.server_url,
                "api_base_url": settings.api_base_url,
            }
            cls._initialized = True
            logger.info(f"Configuration initialized, realtime server {settings.server_url}")

        return cls._settings

    @classmethod
    def _read_environment(cls) -> Dict[str, Any]:
        values = {}
        for field_name in RealtimeSettings.model_fields:
            raw = os.getenv(f"{ENV_PREFIX}{field_name.upper()}")
            if raw not in (None, ""):
                values[field_name] = raw
        return values

    @classmethod
    async def reload(cls, overrides: Optional[Dict[str, Any]] = None) -> RealtimeSettings:
        cls.reset()
        return await cls.initialize(overrides)

    @classmethod
    def reset(cls) -> None:
        cls._settings = None
        cls._config = {}
        cls._initialized = False

    @classmethod
    def get_settings(cls) -> RealtimeSettings:
        if not cls._initialized:
            raise RuntimeError(
                "Config not initialized. Call 'await ConfigSingleton.initialize()' first."
            )
        return cls._settings

    @classmethod
    def get_config(cls, config_name: Optional[str] = None) -> Any:
        """Get a configuration value.

        Args:
            config_name: Optional key; dotted paths walk nested dicts

        Returns:
            Config value, or the entire config if no key is given
        """
        if not cls._initialized:
            raise RuntimeError(
                "Config not initialized. Call 'await ConfigSingleton.initialize()' first."
            )

        if config_name:
            if "." in config_name:
                value = cls._config
                for part in config_name.split("."):
                    if isinstance(value, dict):
                        value = value.get(part)
                    else:
                        return None
                return value
            return cls._config.get(config_name)

        return cls._config


config_singleton = ConfigSingleton()
get_config = config_singleton.get_config
