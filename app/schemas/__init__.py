"""
schemas/ — Pydantic request/response models

Provides input validation at the API boundary, typed results for
moderation and analytics, and auto-generated OpenAPI docs.
"""
