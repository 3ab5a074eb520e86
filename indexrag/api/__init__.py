"""indexrag API layer: routes, schemas, WebSocket, and middleware."""

from indexrag.api.middleware import (
    ErrorHandlingMiddleware,
    RequestLoggingMiddleware,
    configure_cors,
)
from indexrag.api.routes import router
from indexrag.api.schemas import (
    AddDocumentRequest,
    DocumentResponse,
    ErrorResponse,
    HealthResponse,
    QueryRequest,
    TaskListResponse,
)
from indexrag.api.websocket import websocket_progress

__all__ = [
    "AddDocumentRequest",
    "DocumentResponse",
    "ErrorHandlingMiddleware",
    "ErrorResponse",
    "HealthResponse",
    "QueryRequest",
    "RequestLoggingMiddleware",
    "TaskListResponse",
    "configure_cors",
    "router",
    "websocket_progress",
]
