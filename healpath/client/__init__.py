"""
Async client library: token vault, request pipeline, session and synced stores.
"""
