"""Falcon ASGI operator API for Herald."""
