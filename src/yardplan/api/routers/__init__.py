"""API routers."""

from . import context, plans, events

__all__ = ["context", "plans", "events"]
