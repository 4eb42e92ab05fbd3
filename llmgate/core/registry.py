"""Settings registry for breaking circular imports.

This module holds the settings instance so that routes can import it
without causing circular imports with the main module.
"""

# Global settings instance - set by main.create_app during initialization
settings = None


def set_settings(settings_instance):
    """Set the global settings instance."""
    global settings
    settings = settings_instance


def get_settings():
    """Get the global settings instance."""
    if settings is None:
        raise RuntimeError("Settings not initialized. Did you call set_settings?")
    return settings
