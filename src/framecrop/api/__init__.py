"""framecrop - FastAPI HTTP layer.

Modules
-------
main
    FastAPI application factory, token middleware, route handlers and the
    ``main()`` CLI entry point.
models
    Pydantic model that parses and validates the frame query string.
"""
