"""Plant Report - FastAPI REST API layer.

Modules
-------
main
    FastAPI application with all route handlers, the store lifecycle, the
    error handlers, and the ``main()`` CLI entry point.
models
    Pydantic models for API request and response validation.
"""
