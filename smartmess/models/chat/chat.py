"""
Chat room and message models.

Only the persisted side is modelled here; live delivery is handled by
the messaging relay.
"""

from typing import List

from sqlalchemy import Boolean, ForeignKey, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from smartmess.models.base.base_model import TimestampModel
from smartmess.models.common.enums import ChatMessageType, enum_column

__all__ = ["ChatRoom", "ChatMessage"]


class ChatRoom(TimestampModel):
    """Group room of a mess; the default room receives announcements."""

    __tablename__ = "chat_rooms"
    __table_args__ = (
        Index("ix_chat_room_mess_default", "mess_id", "is_default"),
    )

    mess_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("mess_profiles.id", ondelete="CASCADE"),
        nullable=False,
    )
    name: Mapped[str] = mapped_column(String(150), nullable=False)
    is_default: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_by: Mapped[str] = mapped_column(String(36), nullable=False)

    messages: Mapped[List["ChatMessage"]] = relationship(
        back_populates="room",
        cascade="all, delete-orphan",
        order_by="ChatMessage.created_at",
    )


class ChatMessage(TimestampModel):
    __tablename__ = "chat_messages"

    room_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("chat_rooms.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    sender_id: Mapped[str] = mapped_column(String(36), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    message_type: Mapped[ChatMessageType] = mapped_column(
        enum_column(ChatMessageType, "chat_message_type_enum"),
        nullable=False,
        default=ChatMessageType.TEXT,
    )

    room: Mapped["ChatRoom"] = relationship(back_populates="messages")
