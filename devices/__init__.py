"""
Device API: request models, handlers and routes.
"""
