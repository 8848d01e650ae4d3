"""Application package for the table-tennis academy records backend.

This package exposes the service, repository and model modules used by
the FastAPI application: students, their payments and news posts.
Individual modules contain the concrete implementations and
documentation.
"""
