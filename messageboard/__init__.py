"""
Message board backend.

This package provides a FastAPI application serving thread and reply
resources, with a record-store abstraction so the same handlers run against
a SQL database or a process-local in-memory store.
"""
