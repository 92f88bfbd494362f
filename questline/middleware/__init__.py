"""Middleware package for the application."""

from questline.middleware.request_id import RequestIdMiddleware

__all__ = ["RequestIdMiddleware"]
