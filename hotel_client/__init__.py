"""
Hotel Dashboard API client.

This package contains the authenticated request pipeline used by the hotel
administration dashboard, its configuration, and response normalization.
"""
