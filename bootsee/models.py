import secrets
from datetime import datetime
from enum import Enum as PyEnum

from sqlalchemy import (
    Column, Integer, String, Float, DateTime, Boolean, Enum as SQLAlchemyEnum,
    ForeignKey, Text, JSON
)
from sqlalchemy.orm import relationship

from .database import Base


class UserRole(str, PyEnum):
    rider = "rider"
    captain = "captain"


class RideStatus(str, PyEnum):
    pending = "pending"
    accepted = "accepted"
    in_progress = "in_progress"
    completed = "completed"
    cancelled = "cancelled"


class VehicleType(str, PyEnum):
    bike = "bike"
    auto = "auto"
    car = "car"


class PaymentMethod(str, PyEnum):
    cash = "cash"
    upi = "upi"


class PaymentStatus(str, PyEnum):
    pending = "pending"
    completed = "completed"


class AlertType(str, PyEnum):
    sos = "sos"
    speed = "speed"
    route_deviation = "route_deviation"
    inactivity = "inactivity"
    battery_low = "battery_low"


class AlertStatus(str, PyEnum):
    active = "active"
    acknowledged = "acknowledged"
    resolved = "resolved"


ACTIVE_RIDE_STATUSES = (RideStatus.accepted, RideStatus.in_progress)
OPEN_RIDE_STATUSES = (RideStatus.pending, RideStatus.accepted, RideStatus.in_progress)


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    firebase_uid = Column(String, unique=True, index=True, nullable=True)
    email = Column(String, unique=True, index=True, nullable=False)
    hashed_password = Column(String, nullable=True)
    full_name = Column(String, nullable=False)
    phone = Column(String, nullable=True)
    role = Column(SQLAlchemyEnum(UserRole), nullable=False, default=UserRole.rider)
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    document_verified = Column(Boolean, default=False)
    document_type = Column(String, nullable=True)
    document_number = Column(String, nullable=True)
    document_url = Column(String, nullable=True)
    gender = Column(String, nullable=True)
    face_verified = Column(Boolean, default=False)
    face_url = Column(String, nullable=True)

    captain = relationship("Captain", back_populates="user", uselist=False, cascade="all,delete-orphan")
    trusted_contacts = relationship("TrustedContact", back_populates="owner", cascade="all,delete-orphan")


class Captain(Base):
    __tablename__ = "captains"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, unique=True)
    vehicle_number = Column(String, nullable=False)
    vehicle_model = Column(String, nullable=False)
    vehicle_type = Column(SQLAlchemyEnum(VehicleType), default=VehicleType.bike)

    driving_license_verified = Column(Boolean, default=False)
    driving_license_number = Column(String, nullable=True)
    driving_license_url = Column(String, nullable=True)
    aadhar_verified = Column(Boolean, default=False)
    aadhar_number = Column(String, nullable=True)
    aadhar_url = Column(String, nullable=True)

    upi_id = Column(String, nullable=True)
    is_online = Column(Boolean, default=False)
    current_lat = Column(Float, nullable=True)
    current_lng = Column(Float, nullable=True)
    last_location_at = Column(DateTime, nullable=True)
    last_status_change = Column(DateTime, nullable=True)

    rating = Column(Float, default=0.0)
    total_ratings = Column(Integer, default=0)
    total_earnings = Column(Float, default=0.0)
    total_rides = Column(Integer, default=0)
    created_at = Column(DateTime, default=datetime.utcnow)

    user = relationship("User", back_populates="captain")


class Ride(Base):
    __tablename__ = "rides"

    id = Column(Integer, primary_key=True, index=True)
    rider_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    captain_id = Column(Integer, ForeignKey("captains.id"), nullable=True, index=True)

    pickup_lat = Column(Float, nullable=False)
    pickup_lng = Column(Float, nullable=False)
    pickup_address = Column(String, default="")
    drop_lat = Column(Float, nullable=False)
    drop_lng = Column(Float, nullable=False)
    drop_address = Column(String, default="")

    vehicle_type = Column(SQLAlchemyEnum(VehicleType), default=VehicleType.bike)
    distance_km = Column(Float, nullable=False)
    estimated_minutes = Column(Integer, nullable=False)
    fare = Column(Float, nullable=False)
    status = Column(SQLAlchemyEnum(RideStatus), default=RideStatus.pending, index=True)

    # Captain snapshot copied at accept time
    captain_name = Column(String, nullable=True)
    captain_phone = Column(String, nullable=True)
    captain_vehicle = Column(String, nullable=True)
    captain_vehicle_number = Column(String, nullable=True)
    captain_lat = Column(Float, nullable=True)
    captain_lng = Column(Float, nullable=True)
    captain_rating_snapshot = Column(Float, nullable=True)

    payment_method = Column(SQLAlchemyEnum(PaymentMethod), default=PaymentMethod.cash)
    payment_status = Column(SQLAlchemyEnum(PaymentStatus), default=PaymentStatus.pending)
    payment_amount = Column(Float, nullable=True)
    payment_upi_id = Column(String, nullable=True)
    paid_at = Column(DateTime, nullable=True)

    captain_rating = Column(Integer, nullable=True)
    captain_feedback = Column(Text, nullable=True)
    rated_at = Column(DateTime, nullable=True)

    cancelled_by = Column(SQLAlchemyEnum(UserRole), nullable=True)
    cancel_reason = Column(String, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    accepted_at = Column(DateTime, nullable=True)
    started_at = Column(DateTime, nullable=True)
    completed_at = Column(DateTime, nullable=True)
    cancelled_at = Column(DateTime, nullable=True)

    rider = relationship("User", foreign_keys=[rider_id])
    captain = relationship("Captain", foreign_keys=[captain_id])


class TrustedContact(Base):
    __tablename__ = "trusted_contacts"

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    name = Column(String, nullable=False)
    phone = Column(String, nullable=False)
    email = Column(String, nullable=True)
    relationship_label = Column(String, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    owner = relationship("User", back_populates="trusted_contacts")


class SafetyAlert(Base):
    __tablename__ = "safety_alerts"

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    ride_id = Column(Integer, ForeignKey("rides.id"), nullable=True)
    alert_type = Column(SQLAlchemyEnum(AlertType), nullable=False)
    status = Column(SQLAlchemyEnum(AlertStatus), default=AlertStatus.active)
    lat = Column(Float, nullable=True)
    lng = Column(Float, nullable=True)
    details = Column(JSON, default=dict)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=True)


class ContactNotification(Base):
    __tablename__ = "contact_notifications"

    id = Column(Integer, primary_key=True)
    contact_id = Column(Integer, ForeignKey("trusted_contacts.id", ondelete="SET NULL"), nullable=True)
    alert_id = Column(Integer, ForeignKey("safety_alerts.id"), nullable=True)
    share_id = Column(Integer, ForeignKey("ride_shares.id"), nullable=True)
    message = Column(Text, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)


class RideShare(Base):
    __tablename__ = "ride_shares"

    id = Column(Integer, primary_key=True)
    ride_id = Column(Integer, ForeignKey("rides.id"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    token = Column(String, unique=True, index=True, default=lambda: secrets.token_urlsafe(16))
    is_active = Column(Boolean, default=True)
    last_lat = Column(Float, nullable=True)
    last_lng = Column(Float, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    stopped_at = Column(DateTime, nullable=True)

    ride = relationship("Ride")
