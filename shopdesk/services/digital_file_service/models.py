from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, Text

from shopdesk.shared.config import Base, utcnow


class DigitalFile(Base):
    __tablename__ = "digital_files"

    id = Column(Integer, primary_key=True, index=True)
    product_id = Column(Integer, ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    file_url = Column(String(1024), nullable=False)
    file_size = Column(Integer, nullable=True)
    file_type = Column(String(128), nullable=True)  # MIME type
    active = Column(Boolean, nullable=False, default=True)
    download_count = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)
