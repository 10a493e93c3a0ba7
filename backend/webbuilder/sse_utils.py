import json


SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
    "Access-Control-Allow-Origin": "*",
}


def sse_event(event_type: str, data: dict) -> str:
    """Format a Server-Sent Event string."""
    payload = {"type": event_type, **data}
    return sse_data(payload)


def sse_data(payload: dict) -> str:
    """Format an arbitrary JSON payload as a single SSE frame."""
    return f"data: {json.dumps(payload, default=str)}\n\n"
