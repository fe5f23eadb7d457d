"""
groupchat — Python SDK for the group chat backend.

REST + realtime client: auth, profiles, friends, image upload and a
synchronized, ordered view of the shared room.
"""

from groupchat.client import GroupChat, AsyncGroupChat
from groupchat.auth import Auth
from groupchat.config import Settings
from groupchat.errors import (
    GroupChatError,
    Unauthorized,
    ValidationError,
    StoreUnavailable,
    UploadFailed,
    ConnectionError,
)
from groupchat.models.message import Message
from groupchat.presence import PresenceTracker
from groupchat.sync import ConversationSync, Subscription, group_starts

__version__ = "0.1.0"
__all__ = [
    "GroupChat",
    "AsyncGroupChat",
    "Auth",
    "Settings",
    "GroupChatError",
    "Unauthorized",
    "ValidationError",
    "StoreUnavailable",
    "UploadFailed",
    "ConnectionError",
    "Message",
    "PresenceTracker",
    "ConversationSync",
    "Subscription",
    "group_starts",
]
