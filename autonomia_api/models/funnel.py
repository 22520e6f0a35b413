from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint, func
from sqlalchemy.orm import relationship

from autonomia_api.core.database import Base


class ConversationFunnel(Base):
    __tablename__ = "conversation_funnel"

    id = Column(Integer, primary_key=True)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    is_default = Column(Boolean, nullable=False, default=False)
    auto_assignment = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    steps = relationship(
        "ConversationFunnelStep",
        back_populates="funnel",
        cascade="all, delete-orphan",
        order_by="ConversationFunnelStep.order",
    )


class ConversationFunnelStep(Base):
    __tablename__ = "conversation_funnel_step"

    id = Column(Integer, primary_key=True)
    conversation_funnel_id = Column(
        Integer, ForeignKey("conversation_funnel.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    first_step = Column(Boolean, nullable=False, default=False)
    order = Column(Integer, nullable=False, default=0)
    assign_to_team = Column(Boolean, nullable=False, default=False)
    kanban_code = Column(String(64), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    funnel = relationship("ConversationFunnel", back_populates="steps")
    messages = relationship(
        "ConversationFunnelStepMessage",
        back_populates="step",
        cascade="all, delete-orphan",
        order_by="ConversationFunnelStepMessage.shipping_order",
    )


class ConversationFunnelStepMessage(Base):
    __tablename__ = "conversation_funnel_step_message"

    id = Column(Integer, primary_key=True)
    conversation_funnel_step_id = Column(
        Integer, ForeignKey("conversation_funnel_step.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    message_instruction = Column(Text, nullable=True)
    fixed_message = Column(Text, nullable=True)
    # Minutos de inatividade antes do envio; 0 desativa o envio automático.
    shipping_time = Column(Integer, nullable=False, default=0)
    shipping_order = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    step = relationship("ConversationFunnelStep", back_populates="messages")


class DeliveryRecord(Base):
    __tablename__ = "user_session_conversation_funnel_step_message"
    __table_args__ = (
        UniqueConstraint(
            "user_session_id",
            "conversation_funnel_step_message_id",
            name="uq_delivery_session_step_message",
        ),
    )

    id = Column(Integer, primary_key=True)
    user_session_id = Column(Integer, ForeignKey("user_session.id"), nullable=False, index=True)
    conversation_funnel_step_message_id = Column(
        Integer, ForeignKey("conversation_funnel_step_message.id"), nullable=False, index=True
    )
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)


class ConversationFunnelRegister(Base):
    __tablename__ = "conversation_funnel_register"

    id = Column(Integer, primary_key=True)
    user_session_id = Column(Integer, ForeignKey("user_session.id"), nullable=False, index=True)
    account_id = Column(Integer, ForeignKey("account.id"), nullable=False, index=True)
    conversation_funnel_step_id = Column(Integer, ForeignKey("conversation_funnel_step.id"), nullable=True)
    summary = Column(Text, nullable=True)
    last_timestamptz = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
