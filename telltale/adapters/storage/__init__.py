"""User storages: environment variables, JSON file, in-memory session."""
