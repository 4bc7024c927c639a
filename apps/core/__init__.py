"""
Core app for Newsdesk.

Provides the shared base model, user roles, error handling, permissions
and request-id logging context.
"""
