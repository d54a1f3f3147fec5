"""
Server-Sent Events (SSE) for real-time push to the dispatcher dashboard.
Routes call publish("call_created", call=...) and every connected client gets it.
"""

import queue
import threading

import structlog

log = structlog.get_logger(__name__)

# A client that stops reading loses events instead of growing memory forever
CLIENT_QUEUE_SIZE = 100

# Each client gets a queue; we push event dicts (JSON-serializable)
_clients: list = []
_lock = threading.Lock()


def subscribe() -> queue.Queue:
    """Register a new client. Returns a queue that will receive event dicts."""
    q = queue.Queue(maxsize=CLIENT_QUEUE_SIZE)
    with _lock:
        _clients.append(q)
    return q


def unsubscribe(q: queue.Queue) -> None:
    with _lock:
        if q in _clients:
            _clients.remove(q)


def client_count() -> int:
    with _lock:
        return len(_clients)


def publish(event_type: str, **payload) -> int:
    """Send {"type": event_type, **payload} to all clients. Returns how many got it."""
    event = {"type": event_type, **payload}
    with _lock:
        clients = list(_clients)
    delivered = 0
    for q in clients:
        try:
            q.put_nowait(event)
            delivered += 1
        except queue.Full:
            log.warning("sse_client_queue_full", event_type=event_type)
    return delivered
