# Middleware package init
"""
RecipeShare Backend - Middleware Package
==========================================

Middleware Chain:
    Request → [Rate Limit] → [Request ID] → [Logging] → [GZip] → [CORS] → Route

    1. Rate Limit first: abusive requests are rejected before any processing
    2. Request ID: correlation ID for every later log line
    3. Logging: access line with status and duration
"""
