"""ConsultingService and ConsultationBooking models"""
from sqlalchemy import Column, Integer, String, Text, Numeric, Boolean, DateTime, ForeignKey
from sqlalchemy.orm import relationship

from storefront.models.base import Base, utcnow, new_uuid


class ConsultingService(Base):
    __tablename__ = "consulting_services"

    id = Column(Integer, primary_key=True, index=True)
    service_id = Column(String(100), unique=True, nullable=False, index=True)  # business key
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    duration = Column(String(100), nullable=True)
    price = Column(Numeric(10, 2), nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)


class ConsultationBooking(Base):
    """Paid consulting session; one per payment intent"""
    __tablename__ = "consultation_bookings"

    id = Column(String(36), primary_key=True, default=new_uuid)
    service_id = Column(String(100), ForeignKey("consulting_services.service_id"), nullable=False, index=True)
    customer_name = Column(String(255), nullable=False)
    customer_email = Column(String(255), nullable=False, index=True)
    scheduled_date = Column(DateTime(timezone=True), nullable=False)
    message = Column(Text, nullable=False, default="")
    payment_intent_id = Column(String(255), unique=True, nullable=True, index=True)
    payment_amount = Column(Numeric(10, 2), nullable=False)
    status = Column(String(50), nullable=False, default="confirmed")
    meeting_link = Column(String(1024), nullable=True)
    confirmation_sent = Column(Boolean, default=False, nullable=False)
    confirmation_sent_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    service = relationship("ConsultingService")
