"""
Schemas module - entities, request/response bodies and engine results.

Everything lives in app.schemas.schemas.
"""
