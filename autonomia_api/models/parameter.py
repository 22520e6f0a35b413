from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint, func
from sqlalchemy.orm import relationship

from autonomia_api.core.database import Base


class AccountParameter(Base):
    __tablename__ = "account_parameter"
    __table_args__ = (UniqueConstraint("account_id", "name", name="uq_account_parameter_account_name"),)

    id = Column(Integer, primary_key=True)
    account_id = Column(Integer, ForeignKey("account.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    value = Column(Text, nullable=True)
    short_description = Column(String(255), nullable=True)
    help_text = Column(Text, nullable=True)
    default_value = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    account = relationship("Account", back_populates="parameters")


class ProductParameter(Base):
    __tablename__ = "product_parameter"
    __table_args__ = (UniqueConstraint("product_id", "name", name="uq_product_parameter_product_name"),)

    id = Column(Integer, primary_key=True)
    product_id = Column(Integer, ForeignKey("product.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    value = Column(Text, nullable=True)
    short_description = Column(String(255), nullable=True)
    help_text = Column(Text, nullable=True)
    default_value = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    product = relationship("Product", back_populates="parameters")


class AccountParameterStandard(Base):
    __tablename__ = "account_parameters_standard"

    id = Column(Integer, primary_key=True)
    name = Column(String(255), nullable=False, unique=True)
    visible_onboarding = Column(Boolean, nullable=False, default=True)
    short_description = Column(String(255), nullable=True)
    help_text = Column(Text, nullable=True)
    default_value = Column(Text, nullable=True)


class ProductParameterStandard(Base):
    __tablename__ = "product_parameters_standard"

    id = Column(Integer, primary_key=True)
    name = Column(String(255), nullable=False, unique=True)
    visible_onboarding = Column(Boolean, nullable=False, default=True)
    short_description = Column(String(255), nullable=True)
    help_text = Column(Text, nullable=True)
    default_value = Column(Text, nullable=True)
