"""
Fantasy Premier League data layer.

Fetches teams, players and fixtures from the FPL API, caches them in a local
SQLite database and publishes live, projected views of that cache.
"""

__version__ = "1.0.0"
