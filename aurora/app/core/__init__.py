"""
Core package — cross-cutting concerns.

Modules:
    config          — environment variables & settings
    logging_config  — structured JSON / pretty console logging
    errors          — exception hierarchy & handlers
    health          — health check aggregation
    database        — async SQLAlchemy engine, ORM base, session factory
    middleware      — request logging & correlation IDs
"""
