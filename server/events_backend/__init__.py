"""
Backend package for the events API.

This package provides a FastAPI application for creating, listing,
updating, deleting and searching events, with storage and database
abstractions so it can run against Postgres and object storage in
production and in-memory backends locally.
"""
