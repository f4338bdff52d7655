"""Runtime configuration (pydantic-settings)."""
