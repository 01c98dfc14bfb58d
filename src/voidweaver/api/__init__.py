"""VoidWeaver — FastAPI REST API layer.

Modules
-------
main
    FastAPI application with all route handlers and the ``main()`` CLI
    entry point.
models
    Pydantic models for API request and response validation, using the
    camelCase field names the frontend sends.
"""
