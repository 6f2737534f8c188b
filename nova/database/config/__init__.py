"""
The `config` package provides two core building blocks for establishing and managing database connections.

Contents:
    - config: Configuration layer - strongly typed app settings loaded from environment variables (with .env support), exposed through a singleton Settings object
    - connection_engine: Database layer - shared MetaData, the declarative base for ORM models, the session factory, and helpers that build and bind the Engine at application startup

Together they provide secure, environment-driven configuration and a clean ORM foundation.
"""
