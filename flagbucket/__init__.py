"""Feature-flag bucketing: users, audience filters, targeting, version comparison and event queues."""

__version__ = "0.1.0"
__all__ = ["events", "user", "versions", "filters", "target", "event_queue"]