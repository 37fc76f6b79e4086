"""Session authentication and relay services."""
