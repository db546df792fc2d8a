"""
Authentication package for the Hotel Dashboard API client.

This package contains authentication-related functionality including
credential storage, single-flight token refresh, and session management.
"""
