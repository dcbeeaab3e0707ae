from datetime import datetime
from enum import Enum

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import relationship

from app.models.database import Base


class PurchaseStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class Purchase(Base):
    __tablename__ = "purchases"

    id = Column(Integer, primary_key=True, index=True)
    status = Column(String(20), nullable=False, default=PurchaseStatus.PENDING.value, index=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    purchased_at = Column(DateTime, nullable=True)  # set once payment completes

    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False)
    file_id = Column(Integer, ForeignKey("files.id"), nullable=False)

    user = relationship("User", back_populates="purchases")
    product = relationship("Product", back_populates="purchases")
    file = relationship("CodeFile")
    transactions = relationship("Transaction", back_populates="purchase")

    @property
    def is_completed(self) -> bool:
        return self.status == PurchaseStatus.COMPLETED.value
