from sqlalchemy import Column, BigInteger, String, Text, Boolean, DateTime, Integer
from sqlalchemy.orm import relationship
from sqlalchemy.types import Enum as SQLAlchemyEnum
from sqlalchemy.sql import func
from database.base import Base
from revenue.models.models import SubscriptionTier


class Instructor(Base):
    __tablename__ = "instructors"

    id = Column(BigInteger().with_variant(Integer, "sqlite"), primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=False, unique=True)
    title = Column(String(255), nullable=True)  # e.g., "Session guitarist, Berklee"
    bio = Column(Text, nullable=True)
    photo = Column(String(500), nullable=True)  # URL to instructor photo
    # Tier used when the monthly revenue record is opened
    subscription_tier = Column(SQLAlchemyEnum(SubscriptionTier), nullable=False, default=SubscriptionTier.basic)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, nullable=False, server_default=func.current_timestamp())
    updated_at = Column(DateTime, nullable=False, server_default=func.current_timestamp(), onupdate=func.current_timestamp())
    deleted_at = Column(DateTime, nullable=True)

    revenue_records = relationship("InstructorRevenue", back_populates="instructor")

    def __repr__(self):
        return f"<Instructor(id={self.id}, name={self.name}, tier={self.subscription_tier})>"
