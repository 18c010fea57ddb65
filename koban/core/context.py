"""
Request context using contextvars.

Provides task-local context storage for:
- Request ID
- Trace ID
- Client IP
- Authenticated admin ID
"""

import contextvars
from typing import Any

# Context variables
request_id_var: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "request_id", default=None
)
trace_id_var: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "trace_id", default=None
)
client_ip_var: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "client_ip", default=None
)
admin_user_id_var: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "admin_user_id", default=None
)


def set_request_context(
    request_id: str | None = None,
    trace_id: str | None = None,
    client_ip: str | None = None,
    admin_user_id: str | None = None,
) -> None:
    """Set request context variables."""
    if request_id:
        request_id_var.set(request_id)
    if trace_id:
        trace_id_var.set(trace_id)
    if client_ip:
        client_ip_var.set(client_ip)
    if admin_user_id:
        admin_user_id_var.set(admin_user_id)


def get_request_context() -> dict[str, Any]:
    """Get all request context as a dictionary."""
    return {
        "request_id": request_id_var.get(),
        "trace_id": trace_id_var.get(),
        "client_ip": client_ip_var.get(),
        "admin_user_id": admin_user_id_var.get(),
    }


def clear_request_context() -> None:
    """Clear all context variables."""
    request_id_var.set(None)
    trace_id_var.set(None)
    client_ip_var.set(None)
    admin_user_id_var.set(None)
