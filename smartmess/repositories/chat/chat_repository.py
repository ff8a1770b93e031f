"""
Chat room and message repositories.
"""

from typing import Optional

from sqlalchemy.orm import Session

from smartmess.models.chat import ChatMessage, ChatRoom
from smartmess.repositories.base.base_repository import BaseRepository


class ChatRoomRepository(BaseRepository[ChatRoom]):
    def __init__(self, db: Session):
        super().__init__(ChatRoom, db)

    def get_default_room(self, mess_id: str) -> Optional[ChatRoom]:
        return self.find_one_by(mess_id=mess_id, is_default=True)


class ChatMessageRepository(BaseRepository[ChatMessage]):
    def __init__(self, db: Session):
        super().__init__(ChatMessage, db)
