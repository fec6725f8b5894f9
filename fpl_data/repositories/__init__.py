"""
Data access layer.

- store: transactional SQLite cache with per-type change notification
- fantasy_repository: the data layer facade handed to presentation layers
"""
