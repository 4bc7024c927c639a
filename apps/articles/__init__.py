"""
Articles app for Newsdesk.

Provides article storage, the editorial workflow and reader access control.
"""
