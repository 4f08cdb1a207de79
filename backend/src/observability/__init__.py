"""Observability module for the document vault.

Provides structured logging, request ID correlation, metrics and health checks.
"""

from .logging_config import configure_logging, get_logger
from .metrics import (
    access_decisions_total,
    content_checks_total,
    download_urls_issued_total,
    upload_requests_rejected_total,
    upload_urls_issued_total,
)
from .request_id import request_id_var, get_request_id, set_request_id, generate_request_id
from .middleware import RequestIDMiddleware

__all__ = [
    # Logging
    "configure_logging",
    "get_logger",
    # Metrics
    "access_decisions_total",
    "content_checks_total",
    "download_urls_issued_total",
    "upload_requests_rejected_total",
    "upload_urls_issued_total",
    # Request ID
    "request_id_var",
    "get_request_id",
    "set_request_id",
    "generate_request_id",
    # Middleware
    "RequestIDMiddleware",
]
