"""WebSocket endpoint for real-time task registry updates.

Pushes the full list of active tasks every time the registry changes:

    { "tasks": [ { "id": "...", "label": "...", "progress": 0.4, ... } ] }

The ``while True: await websocket.receive_text()`` loop keeps the
connection open; the pushes happen from the observer registered with the
:class:`TaskRegistry`.
"""

from __future__ import annotations

import structlog
from fastapi import WebSocket, WebSocketDisconnect

from indexrag.api.schemas import TaskResponse
from indexrag.models.pipeline import ProcessingTask
from indexrag.pipeline.progress_tracker import TaskRegistry
from indexrag.utils.logging import get_logger

_logger: structlog.BoundLogger = get_logger(__name__)


def _payload(tasks: list[ProcessingTask]) -> dict:
    return {"tasks": [TaskResponse.from_task(t).model_dump(mode="json") for t in tasks]}


async def websocket_progress(websocket: WebSocket) -> None:
    """Stream task snapshots to the client until it disconnects."""
    registry: TaskRegistry = websocket.app.state.task_registry

    await websocket.accept()
    _logger.info("websocket_connected")

    async def _on_tasks(tasks: list[ProcessingTask]) -> None:
        # A send failure surfaces in the registry's observer error log; the
        # receive loop below notices the disconnect and unregisters us.
        await websocket.send_json(_payload(tasks))

    registry.register_observer(_on_tasks)
    try:
        await websocket.send_json(_payload(registry.tasks))
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        _logger.info("websocket_disconnected")
    finally:
        registry.unregister_observer(_on_tasks)
        _logger.debug("websocket_observer_cleaned_up")
