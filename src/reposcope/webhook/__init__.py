"""reposcope push-event handling and reindex worker."""

from reposcope.webhook.push import PushEvent, handle_push_event, parse_push_event
from reposcope.webhook.worker import JobOutcome, ReindexWorker

__all__ = ["JobOutcome", "PushEvent", "ReindexWorker", "handle_push_event", "parse_push_event"]
