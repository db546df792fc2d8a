"""
Shared definitions for the Hotel Dashboard API client.

This package contains the data models, abstract interfaces, structured
exceptions, and logging configuration used by the client components.
"""
