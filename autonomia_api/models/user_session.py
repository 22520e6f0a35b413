from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, UniqueConstraint, func
from sqlalchemy.orm import relationship

from autonomia_api.core.database import Base


class UserSession(Base):
    __tablename__ = "user_session"
    __table_args__ = (UniqueConstraint("account_id", "phone", name="uq_user_session_account_phone"),)

    id = Column(Integer, primary_key=True)
    account_id = Column(Integer, ForeignKey("account.id"), nullable=False, index=True)
    product_id = Column(Integer, ForeignKey("product.id"), nullable=False)
    contact_id = Column(Integer, ForeignKey("contact.id"), nullable=True, index=True)
    phone = Column(String(32), nullable=False)
    name = Column(String(255), nullable=False)
    conversation_funnel_step_id = Column(
        Integer,
        ForeignKey("conversation_funnel_step.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    inbox_id = Column(Integer, nullable=True)
    conversation_id = Column(Integer, nullable=True)
    message_time = Column(Integer, nullable=True)
    last_access = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    account = relationship("Account")
    contact = relationship("Contact")
    step = relationship("ConversationFunnelStep")
