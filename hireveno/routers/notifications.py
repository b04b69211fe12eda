from fastapi import APIRouter, Depends
from hireveno.auth_tools import get_current_user
from hireveno.database.database import User
from hireveno.services.notifications import notification_relay

router = APIRouter(prefix='/notifications')

@router.get('/')
def get_notifications(current_user: User = Depends(get_current_user)):
    """Pending notifications of the user. Each one is returned once."""
    return [{
        "message": notification.message,
        "link": notification.link,
        "session_id": notification.session_id,
        "kind": notification.kind,
        "created_at": notification.created_at,
    } for notification in notification_relay.drain(current_user.id)]
