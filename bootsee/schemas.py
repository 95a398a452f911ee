from datetime import datetime
from typing import List, Optional, Dict, Any

from pydantic import BaseModel, EmailStr, Field, ConfigDict

from .models import (
    UserRole, RideStatus, VehicleType, PaymentMethod, PaymentStatus, AlertType, AlertStatus
)


# --- Auth & profiles ---
class UserCreate(BaseModel):
    full_name: str = Field(..., min_length=1)
    email: EmailStr
    password: str = Field(..., min_length=6)
    phone: Optional[str] = None


class UserLogin(BaseModel):
    email: EmailStr
    password: str


class FirebaseLogin(BaseModel):
    firebase_token: str


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    role: UserRole


class UserResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    email: EmailStr
    full_name: str
    phone: Optional[str] = None
    role: UserRole
    document_verified: bool = False
    document_type: Optional[str] = None
    gender: Optional[str] = None
    face_verified: bool = False


class ProfileUpdate(BaseModel):
    full_name: Optional[str] = Field(None, min_length=1)
    phone: Optional[str] = None


class CaptainResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: int
    vehicle_number: str
    vehicle_model: str
    vehicle_type: VehicleType
    driving_license_verified: bool
    aadhar_verified: bool
    upi_id: Optional[str] = None
    is_online: bool
    current_lat: Optional[float] = None
    current_lng: Optional[float] = None
    rating: float
    total_ratings: int
    total_earnings: float
    total_rides: int


class NearbyCaptain(BaseModel):
    id: int
    name: str
    vehicle_type: VehicleType
    vehicle_model: str
    rating: float
    lat: float
    lng: float
    distance_km: float


class DocumentData(BaseModel):
    full_name: str = ""
    gender: str = ""
    date_of_birth: str = ""
    document_number: str = ""
    document_type: str = "Unknown"
    is_verified: bool = True


# --- Geo ---
class Point(BaseModel):
    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)


class FareEstimateRequest(BaseModel):
    pickup: Point
    drop: Point
    vehicle_type: VehicleType = VehicleType.bike


class FareEstimateResponse(BaseModel):
    distance_km: float
    estimated_minutes: int
    fare: float
    currency: str
    vehicle_type: VehicleType


class RouteResponse(BaseModel):
    distance_km: float
    duration_minutes: int
    coordinates: List[List[float]]
    source: str


class GeocodeResult(BaseModel):
    display_name: str
    lat: float
    lng: float


# --- Rides ---
class RideRequest(BaseModel):
    pickup: Point
    drop: Point
    pickup_address: str = ""
    drop_address: str = ""
    vehicle_type: VehicleType = VehicleType.bike
    payment_method: PaymentMethod = PaymentMethod.cash


class RideCancel(BaseModel):
    reason: Optional[str] = None


class RideRating(BaseModel):
    rating: int = Field(..., ge=1, le=5)
    feedback: Optional[str] = None


class RideResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    rider_id: int
    captain_id: Optional[int] = None
    pickup_lat: float
    pickup_lng: float
    pickup_address: str
    drop_lat: float
    drop_lng: float
    drop_address: str
    vehicle_type: VehicleType
    distance_km: float
    estimated_minutes: int
    fare: float
    status: RideStatus
    captain_name: Optional[str] = None
    captain_phone: Optional[str] = None
    captain_vehicle: Optional[str] = None
    captain_vehicle_number: Optional[str] = None
    captain_lat: Optional[float] = None
    captain_lng: Optional[float] = None
    payment_method: PaymentMethod
    payment_status: PaymentStatus
    payment_amount: Optional[float] = None
    captain_rating: Optional[int] = None
    cancelled_by: Optional[UserRole] = None
    cancel_reason: Optional[str] = None
    created_at: Optional[datetime] = None
    accepted_at: Optional[datetime] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None


# --- Captain ---
class StatusUpdate(BaseModel):
    is_online: bool


class LocationUpdate(BaseModel):
    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)
    speed: Optional[float] = Field(None, ge=0, description="metres per second")


class UpiIdUpdate(BaseModel):
    upi_id: str


# --- Payments & earnings ---
class UpiQrRequest(BaseModel):
    upi_id: Optional[str] = None
    payee_name: Optional[str] = None
    amount: Optional[float] = Field(None, gt=0)
    note: str = "Ride Payment"


class UpiQrResponse(BaseModel):
    upi_url: str
    qr_code: str
    amount: Optional[float] = None
    upi_id: str


class EarningsBreakdown(BaseModel):
    total_amount: float
    commission_percentage: float
    commission_amount: float
    captain_earnings: float


class MonthlyEarnings(BaseModel):
    year: int
    month: int
    ride_count: int
    gross: float
    commission: float
    net: float
    payout_date: datetime
    rides: List[Dict[str, Any]]


# --- Safety ---
class TrustedContactCreate(BaseModel):
    name: str = Field(..., min_length=1)
    phone: str = Field(..., min_length=5)
    email: Optional[EmailStr] = None
    relationship_label: Optional[str] = None


class TrustedContactResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    phone: str
    email: Optional[str] = None
    relationship_label: Optional[str] = None


class SosRequest(BaseModel):
    lat: Optional[float] = None
    lng: Optional[float] = None
    message: Optional[str] = None
    ride_id: Optional[int] = None


class TelemetryReport(BaseModel):
    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)
    ride_id: Optional[int] = None
    speed: Optional[float] = Field(None, ge=0, description="metres per second")
    battery_level: Optional[float] = Field(None, ge=0, le=100)
    charging: bool = False


class SafetyAlertResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    alert_type: AlertType
    status: AlertStatus
    ride_id: Optional[int] = None
    lat: Optional[float] = None
    lng: Optional[float] = None
    details: Dict[str, Any] = {}
    created_at: Optional[datetime] = None


class RideShareCreate(BaseModel):
    ride_id: int


class RideShareResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    ride_id: int
    token: str
    is_active: bool


class SharedRideView(BaseModel):
    ride_id: int
    status: RideStatus
    pickup_address: str
    drop_address: str
    captain_name: Optional[str] = None
    captain_vehicle_number: Optional[str] = None
    lat: Optional[float] = None
    lng: Optional[float] = None
