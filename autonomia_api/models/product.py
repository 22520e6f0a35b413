from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, Text, func
from sqlalchemy.orm import relationship

from autonomia_api.core.database import Base


class Product(Base):
    __tablename__ = "product"

    id = Column(Integer, primary_key=True)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    company_id = Column(Integer, ForeignKey("company.id"), nullable=True, index=True)
    subdomain = Column(String(255), nullable=True)
    conversation_funnel_id = Column(
        Integer, ForeignKey("conversation_funnel.id", ondelete="SET NULL"), nullable=True
    )
    is_approved = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    company = relationship("Company")
    parameters = relationship("ProductParameter", back_populates="product", cascade="all, delete-orphan")
