from .server import create_app, set_ready

__all__ = ["create_app", "set_ready"]
