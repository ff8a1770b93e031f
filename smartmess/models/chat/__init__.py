from smartmess.models.chat.chat import ChatMessage, ChatRoom

__all__ = ["ChatRoom", "ChatMessage"]
