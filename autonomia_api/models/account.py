from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, func
from sqlalchemy.orm import relationship

from autonomia_api.core.database import Base


class Account(Base):
    __tablename__ = "account"

    id = Column(Integer, primary_key=True)
    name = Column(String(255), nullable=False)
    social_name = Column(String(255), nullable=True)
    email = Column(String(255), nullable=True)
    phone = Column(String(32), nullable=True)
    document = Column(String(32), nullable=True)
    domain = Column(String(255), nullable=True)
    product_id = Column(Integer, ForeignKey("product.id"), nullable=False, index=True)
    conversation_funnel_id = Column(
        Integer,
        ForeignKey("conversation_funnel.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    product = relationship("Product")
    conversation_funnel = relationship("ConversationFunnel")
    parameters = relationship("AccountParameter", back_populates="account", cascade="all, delete-orphan")
