"""Shared utilities: configuration-driven logging, errors, database and locks."""
