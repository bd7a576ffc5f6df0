"""API route modules. Each exposes ``router`` and ``set_services``."""
