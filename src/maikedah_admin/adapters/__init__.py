"""Adapters - Infrastructure implementations of core interfaces.

This package contains the concrete implementations of the Protocol
interfaces defined in the core module.

Adapters are organized by type:
- memory/: In-process backend and credential provider (tests, demos)
- postgres/: asyncpg repositories, credential provider and schema setup
- storage/: Session snapshot stores and avatar storage
"""
