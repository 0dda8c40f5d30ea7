# Overview: Per-application storage context; replaces module-level file paths and handles.

from flask import current_app

from .services.storage import StorageContext, build_context

EXTENSION_KEY = "stockbook"


def init_storage(app) -> StorageContext:
    """Build the storage context once at startup and attach it to the app."""
    ctx = build_context(app.config)
    app.extensions[EXTENSION_KEY] = ctx
    return ctx


def get_context() -> StorageContext:
    return current_app.extensions[EXTENSION_KEY]
