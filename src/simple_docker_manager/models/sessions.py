"""Login session record."""

from dataclasses import dataclass
from datetime import datetime


@dataclass
class Session:
    """A signed-in browser session owned by the session manager."""

    session_id: str
    username: str
    created_at: datetime
    last_accessed: datetime
