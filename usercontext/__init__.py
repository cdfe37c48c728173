"""
User context service - per-user memory for a conversational health assistant.

This package contains all application source code organized by responsibility:
- api/       : FastAPI routes and HTTP handling
- core/      : Configuration, logging, errors, and cross-cutting utilities
- services/  : Orchestration helpers built on top of the memory store
- database/  : SQLAlchemy connection and table definitions
- memory/    : Per-user memory store, merge semantics, and backends
- models/    : Pydantic models for memory records and request/response schemas
"""
