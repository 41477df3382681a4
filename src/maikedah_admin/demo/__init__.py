"""Seeding helpers for local and demo deployments."""
