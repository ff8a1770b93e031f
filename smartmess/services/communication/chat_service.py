"""
Mess chat service.

Persists messages into mess chat rooms. Live delivery belongs to the
messaging relay; announcements posted here are picked up from storage.
"""

from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from smartmess.core.exceptions import ResourceNotFoundError, ValidationError
from smartmess.models.chat import ChatMessage
from smartmess.models.common.enums import ChatMessageType
from smartmess.repositories.chat.chat_repository import ChatMessageRepository, ChatRoomRepository
from smartmess.services.base import BaseService, ServiceResult


class ChatService(BaseService[ChatMessage, ChatMessageRepository]):
    """
    Room messaging for a mess.

    - send_message: validated write into a given room
    - announce: best-effort post into the mess's default room
    """

    MAX_MESSAGE_LENGTH = 5000

    def __init__(self, db_session: Session):
        super().__init__(ChatMessageRepository(db_session), db_session)
        self.room_repository = ChatRoomRepository(db_session)

    def _validate_content(self, content: Optional[str]) -> str:
        content = (content or "").strip()
        if not content:
            raise ValidationError("Message content cannot be empty", field="content")
        if len(content) > self.MAX_MESSAGE_LENGTH:
            raise ValidationError(
                f"Message cannot exceed {self.MAX_MESSAGE_LENGTH} characters",
                field="content",
            )
        return content

    def send_message(
        self,
        sender_id: str,
        room_id: str,
        content: str,
        message_type: ChatMessageType = ChatMessageType.TEXT,
    ) -> ServiceResult[ChatMessage]:
        """
        Store a message in a room.

        Args:
            sender_id: User posting the message
            room_id: Target chat room
            content: Message text
            message_type: text or system

        Returns:
            ServiceResult containing the stored message
        """
        try:
            text = self._validate_content(content)
            room = self.room_repository.get_by_id(room_id)
            if room is None:
                raise ResourceNotFoundError("Chat room", room_id)

            message = self.repository.create(
                ChatMessage(
                    room_id=room.id,
                    sender_id=sender_id,
                    content=text,
                    message_type=message_type,
                )
            )
            self._commit()
            self._logger.debug(f"Message {message.id} posted to room {room.id}")
            return ServiceResult.success(message, message="Message sent successfully")
        except Exception as e:
            self._rollback()
            return self._handle_exception(e, "send message", room_id)

    def announce(self, mess_id: str, sender_id: str, content: str) -> bool:
        """
        Post an announcement to the mess's default room.

        Never raises: a missing room or a failed write is logged and
        reported as False so the calling operation is unaffected.
        """
        try:
            room = self.room_repository.get_default_room(mess_id)
        except SQLAlchemyError as e:
            self._logger.warning(f"Announcement skipped, room lookup failed: {e}")
            self._rollback()
            return False

        if room is None:
            self._logger.info(f"No default chat room for mess {mess_id}; announcement skipped")
            return False

        result = self.send_message(sender_id, room.id, content)
        if not result:
            self._logger.warning(
                f"Announcement send failed: {result.message}",
                extra={"mess_id": mess_id, "room_id": room.id},
            )
        return result.is_success
