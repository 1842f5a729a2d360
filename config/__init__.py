# Configuration module for the device tracking backend
from .settings import (
    ConfigurationError,
    Environment,
    Settings,
    get_settings,
    validate_startup,
)

__all__ = ["ConfigurationError", "Environment", "Settings", "get_settings", "validate_startup"]
