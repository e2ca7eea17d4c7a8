"""
Schemas module - Request/Response schemas for API endpoints.

Stored documents are loosely typed dicts; schemas are the API contract
(what the client sends).
"""
