"""Chat message model definitions."""

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, Text
from sqlalchemy.orm import relationship
from hilearn.database import Base, utc_now


class ChatMessage(Base):
    """A direct message between two users. Only ``read`` changes after insert."""
    __tablename__ = "chat_messages"

    id = Column(Integer, primary_key=True)
    sender_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    receiver_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    message = Column(Text, nullable=False)
    created_at = Column(DateTime, nullable=False, default=utc_now)
    read = Column(Boolean, nullable=False, default=False)

    sender = relationship("User", foreign_keys=[sender_id], lazy="joined")
