"""External content collaborators: balance tables and construction snapshots."""
