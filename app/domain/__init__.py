"""Domain types shared across the application (no database access)."""
