"""Dashboard route modules, each exposing ``create_router()``."""
