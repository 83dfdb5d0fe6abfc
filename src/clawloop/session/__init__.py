"""Session plumbing — the in-process message bus."""

from clawloop.session.bus import EventQueue, MessageBus, Subscription

__all__ = ["EventQueue", "MessageBus", "Subscription"]
