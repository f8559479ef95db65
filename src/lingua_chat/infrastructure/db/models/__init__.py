"""Import all models so Base.metadata sees them."""
from lingua_chat.infrastructure.db.models.message import MessageModel

__all__ = [
    "MessageModel",
]
