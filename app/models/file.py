# app/models/file.py
from datetime import datetime
from decimal import Decimal

from sqlalchemy import Column, DateTime, ForeignKey, Integer, Numeric, String, Text
from sqlalchemy.orm import relationship

from app.models.database import Base


class CodeFile(Base):
    __tablename__ = "files"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)                # Display name in the shop
    description = Column(Text, nullable=True)
    price = Column(Numeric(10, 2), nullable=False, default=Decimal("0.00"))
    original_name = Column(String(255), nullable=False)       # Name admin uploaded
    stored_name = Column(String(512), nullable=False)         # Object key in the bucket
    path = Column(String(512), nullable=False)                # Storage path
    size = Column(Integer, nullable=False)                    # Size in bytes
    content_type = Column(String(100), nullable=False, default="application/octet-stream")
    uploaded_at = Column(DateTime, default=datetime.utcnow)

    uploader_id = Column(Integer, ForeignKey("users.id"), nullable=False)

    # Many files → one uploader (User)
    uploader = relationship("User", back_populates="files")
    products = relationship("Product", back_populates="file")
