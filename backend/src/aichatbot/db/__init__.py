"""Database access layer."""

from typing import Callable, ContextManager

from sqlalchemy.orm import Session

# Factory yielding a session that commits on success and rolls back on error.
# Long-lived components (stream contexts, artifact handlers) take one of these
# instead of a Session.
SessionScope = Callable[[], ContextManager[Session]]
