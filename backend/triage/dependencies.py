"""Dependency injection providers for FastAPI."""

from triage.inbox.session import InboxSession

# One session per process; suggestions and archive state live only here
_inbox_session: InboxSession | None = None


def get_inbox_session() -> InboxSession:
    """Return singleton InboxSession instance."""
    global _inbox_session
    if _inbox_session is None:
        _inbox_session = InboxSession()
    return _inbox_session
