# chatrooms/core/state.py
from __future__ import annotations

from datetime import datetime, timezone

from chatrooms.services.connection_manager import ConnectionManager
from chatrooms.services.notifier import Notifier

# Global singletons for app state
connection_manager = ConnectionManager()
notifier = Notifier(connection_manager)

app_start_time: datetime = datetime.now(timezone.utc)
