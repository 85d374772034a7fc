"""HTTP middleware: request size limit, request ID.

Applied in main app; order matters (first added = outermost).
"""

from app.middleware.request_id import RequestIdFilter, RequestIDMiddleware, get_request_id
from app.middleware.request_size_limit import RequestSizeLimitMiddleware

__all__ = [
    "RequestIDMiddleware",
    "RequestIdFilter",
    "RequestSizeLimitMiddleware",
    "get_request_id",
]
