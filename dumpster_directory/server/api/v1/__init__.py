"""Version 1 of the directory HTTP API."""
