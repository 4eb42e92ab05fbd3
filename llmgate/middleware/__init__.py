"""Middleware modules for the gateway."""

from .request_logging import RequestLoggingMiddleware, mask_path

__all__ = ["RequestLoggingMiddleware", "mask_path"]
