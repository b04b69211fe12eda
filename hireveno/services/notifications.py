"""
In-process change feed and the notification relay built on it.

Services publish an event after the corresponding commit. The relay turns events
into user-facing notifications and keeps them in a small per-user inbox that the
client drains by polling. Delivery is best effort: nothing is persisted, a full
inbox drops its oldest entry and handler errors are logged and dropped.
"""
import threading
from collections import defaultdict, deque
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Deque, Dict, List, Optional
from hireveno.database.database import utcnow
from hireveno.logger import logger

MESSAGE_CREATED = "message.created"
SESSION_CREATED = "session.created"
SESSION_STATUS_CHANGED = "session.status_changed"

INBOX_SIZE = 50

@dataclass
class Event:
    name: str
    session_id: str
    client_id: str
    student_id: str
    actor_id: Optional[str] = None
    actor_name: Optional[str] = None
    old_status: Optional[str] = None
    new_status: Optional[str] = None

@dataclass
class Notification:
    message: str
    link: str
    session_id: str
    kind: str
    created_at: datetime = field(default_factory=utcnow)

class EventBus:
    """Synchronous publish/subscribe. A failing subscriber never affects the publisher."""

    def __init__(self):
        self._subscribers: Dict[str, List[Callable[[Event], None]]] = defaultdict(list)

    def subscribe(self, name: str, handler: Callable[[Event], None]):
        self._subscribers[name].append(handler)

    def publish(self, event: Event):
        for handler in list(self._subscribers.get(event.name, [])):
            try:
                handler(event)
            except Exception as e:
                logger.error(f"Notification handler failed for {event.name} on session {event.session_id}: {str(e)}")

STATUS_MESSAGES = {
    "confirmed": "Session confirmed! You can now start chatting.",
    "cancelled": "Session has been cancelled.",
    "completed": "Session completed.",
}

class NotificationRelay:
    def __init__(self, inbox_size: int = INBOX_SIZE):
        self._inboxes: Dict[str, Deque[Notification]] = defaultdict(lambda: deque(maxlen=inbox_size))
        self._lock = threading.Lock()

    def attach(self, bus: EventBus):
        bus.subscribe(MESSAGE_CREATED, self.on_message_created)
        bus.subscribe(SESSION_CREATED, self.on_session_created)
        bus.subscribe(SESSION_STATUS_CHANGED, self.on_session_status_changed)
        return self

    def _push(self, user_id: str, notification: Notification):
        with self._lock:
            self._inboxes[user_id].append(notification)

    def on_message_created(self, event: Event):
        # Only the other party of the session hears about a message
        for user_id in (event.client_id, event.student_id):
            if user_id == event.actor_id:
                continue
            self._push(user_id, Notification(
                message=f"New message from {event.actor_name}",
                link=f"/chat/{event.session_id}",
                session_id=event.session_id,
                kind=MESSAGE_CREATED,
            ))

    def on_session_created(self, event: Event):
        self._push(event.student_id, Notification(
            message=f"New session booked by {event.actor_name}",
            link="/dashboard",
            session_id=event.session_id,
            kind=SESSION_CREATED,
        ))

    def on_session_status_changed(self, event: Event):
        if event.old_status == event.new_status:
            return
        message = STATUS_MESSAGES.get(event.new_status)
        if not message:
            return
        for user_id in (event.client_id, event.student_id):
            self._push(user_id, Notification(
                message=message,
                link="/dashboard",
                session_id=event.session_id,
                kind=SESSION_STATUS_CHANGED,
            ))

    def drain(self, user_id: str) -> List[Notification]:
        """Return and forget every pending notification of a user."""
        with self._lock:
            inbox = self._inboxes.pop(user_id, None)
        return list(inbox) if inbox else []

    def pending(self, user_id: str) -> int:
        with self._lock:
            return len(self._inboxes.get(user_id, ()))

# Process-wide feed and relay
event_bus = EventBus()
notification_relay = NotificationRelay().attach(event_bus)

def publish_status_change(session, old_status: str, new_status: str, bus: EventBus = None):
    (bus or event_bus).publish(Event(
        name=SESSION_STATUS_CHANGED,
        session_id=session.id,
        client_id=session.client_id,
        student_id=session.student_id,
        old_status=old_status,
        new_status=new_status,
    ))
