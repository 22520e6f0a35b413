from sqlalchemy import Column, DateTime, Integer, String, func

from autonomia_api.core.database import Base


class Company(Base):
    __tablename__ = "company"

    id = Column(Integer, primary_key=True)
    social_name = Column(String(255), nullable=False)
    document = Column(String(32), nullable=True)
    email = Column(String(255), nullable=True)
    phone_number = Column(String(32), nullable=True)
    # Chave de resolução de tenant por hostname/slug.
    domain = Column(String(255), nullable=True, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )
