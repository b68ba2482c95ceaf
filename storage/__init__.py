"""Session persistence on SQLite."""
