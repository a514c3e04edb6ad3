"""Mock upstream API servers for testing."""

from .app import create_app, create_power_app, create_sensor_app

__all__ = ["create_app", "create_power_app", "create_sensor_app"]
