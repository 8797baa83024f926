"""Database models."""

from models.chat import Conversation, Message
from models.like import Like
from models.match import Match
from models.notification import Notification, NotificationType
from models.photo import Photo
from models.profile import Profile
from models.safety import Block, Report
from models.user import User
from models.visit import ProfileVisit

__all__ = [
    "User",
    "Profile",
    "Photo",
    "Like",
    "Match",
    "Block",
    "Report",
    "ProfileVisit",
    "Conversation",
    "Message",
    "Notification",
    "NotificationType",
]
