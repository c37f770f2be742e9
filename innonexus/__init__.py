"""
Backend package for the InnoNexus incubator API.

This package provides a FastAPI application with document store, mail and
identity abstractions so the same code runs against Firestore in production
and in-memory backends in development and tests.
"""
