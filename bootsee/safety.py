"""Trusted contacts, SOS, automated safety alerts and live ride sharing."""
import logging
from datetime import datetime
from typing import List, Optional

from sqlalchemy.orm import Session

from .config import CONFIG
from .errors import NotFound, ValidationFailed, Forbidden
from .geo import haversine_km
from .models import (
    User, Ride, RideStatus, TrustedContact, SafetyAlert, AlertType, AlertStatus,
    ContactNotification, RideShare, ACTIVE_RIDE_STATUSES
)

logger = logging.getLogger(__name__)

# Alert types that trusted contacts hear about immediately.
NOTIFY_CONTACTS = {AlertType.sos, AlertType.route_deviation, AlertType.inactivity}


# --- Trusted contacts ---
def list_contacts(db: Session, user: User) -> List[TrustedContact]:
    return db.query(TrustedContact).filter(TrustedContact.user_id == user.id).order_by(TrustedContact.id).all()


def add_contact(db: Session, user: User, name: str, phone: str, email: Optional[str] = None,
                relationship_label: Optional[str] = None) -> TrustedContact:
    existing = list_contacts(db, user)
    if len(existing) >= CONFIG["MAX_TRUSTED_CONTACTS"]:
        raise ValidationFailed(f"You can add at most {CONFIG['MAX_TRUSTED_CONTACTS']} trusted contacts")
    if any(c.phone == phone for c in existing):
        raise ValidationFailed("This contact is already in your trusted list")
    contact = TrustedContact(user_id=user.id, name=name, phone=phone, email=email,
                             relationship_label=relationship_label)
    db.add(contact)
    db.commit()
    db.refresh(contact)
    return contact


def remove_contact(db: Session, user: User, contact_id: int):
    contact = db.query(TrustedContact).filter(
        TrustedContact.id == contact_id, TrustedContact.user_id == user.id
    ).first()
    if not contact:
        raise NotFound("Contact not found")
    db.delete(contact)
    db.commit()


def _notify_contacts(db: Session, user: User, message: str, alert: Optional[SafetyAlert] = None,
                     share: Optional[RideShare] = None) -> int:
    contacts = list_contacts(db, user)
    for contact in contacts:
        db.add(ContactNotification(
            contact_id=contact.id,
            alert_id=alert.id if alert else None,
            share_id=share.id if share else None,
            message=message,
        ))
    return len(contacts)


# --- Alerts ---
def raise_alert(db: Session, user: User, alert_type: AlertType, lat=None, lng=None,
                ride: Optional[Ride] = None, details: Optional[dict] = None) -> SafetyAlert:
    alert = SafetyAlert(
        user_id=user.id,
        ride_id=ride.id if ride else None,
        alert_type=alert_type,
        lat=lat,
        lng=lng,
        details=details or {},
    )
    db.add(alert)
    db.flush()
    if alert_type in NOTIFY_CONTACTS:
        where = f" near {lat:.5f},{lng:.5f}" if lat is not None and lng is not None else ""
        notified = _notify_contacts(
            db, user, f"{user.full_name}: {alert_type.value.replace('_', ' ')} alert{where}", alert=alert
        )
        logger.warning("Safety alert %s for user %s (%d contacts notified)", alert_type.value, user.id, notified)
    else:
        logger.info("Safety alert %s for user %s", alert_type.value, user.id)
    return alert


def trigger_sos(db: Session, user: User, lat=None, lng=None, message: Optional[str] = None,
                ride: Optional[Ride] = None) -> SafetyAlert:
    alert = raise_alert(db, user, AlertType.sos, lat, lng, ride, {"message": message or "SOS button pressed"})
    db.commit()
    db.refresh(alert)
    return alert


def resolve_sos(db: Session, user: User) -> int:
    alerts = db.query(SafetyAlert).filter(
        SafetyAlert.user_id == user.id,
        SafetyAlert.alert_type == AlertType.sos,
        SafetyAlert.status != AlertStatus.resolved,
    ).all()
    now = datetime.utcnow()
    for alert in alerts:
        alert.status = AlertStatus.resolved
        alert.updated_at = now
    if alerts:
        _notify_contacts(db, user, f"{user.full_name} is safe: SOS resolved")
    db.commit()
    return len(alerts)


def acknowledge_alert(db: Session, user: User, alert_id: int) -> SafetyAlert:
    alert = db.query(SafetyAlert).filter(SafetyAlert.id == alert_id, SafetyAlert.user_id == user.id).first()
    if not alert:
        raise NotFound("Alert not found")
    if alert.status == AlertStatus.active:
        alert.status = AlertStatus.acknowledged
        alert.updated_at = datetime.utcnow()
        db.commit()
        db.refresh(alert)
    return alert


def list_alerts(db: Session, user: User, only_active: bool = False) -> List[SafetyAlert]:
    q = db.query(SafetyAlert).filter(SafetyAlert.user_id == user.id)
    if only_active:
        q = q.filter(SafetyAlert.status == AlertStatus.active)
    return q.order_by(SafetyAlert.created_at.desc(), SafetyAlert.id.desc()).all()


def route_points(ride: Ride, step_km: float = 0.1) -> List[tuple]:
    """Points every ``step_km`` along the straight pickup-drop line."""
    direct = haversine_km(ride.pickup_lat, ride.pickup_lng, ride.drop_lat, ride.drop_lng)
    steps = max(1, int(direct / step_km))
    return [
        (ride.pickup_lat + (ride.drop_lat - ride.pickup_lat) * i / steps,
         ride.pickup_lng + (ride.drop_lng - ride.pickup_lng) * i / steps)
        for i in range(steps + 1)
    ]


def route_deviation_m(ride: Ride, lat: float, lng: float) -> float:
    return min(haversine_km(lat, lng, p[0], p[1]) for p in route_points(ride)) * 1000.0


def check_telemetry(db: Session, user: User, lat: float, lng: float, speed_mps: Optional[float] = None,
                    battery_level: Optional[float] = None, charging: bool = False,
                    ride: Optional[Ride] = None) -> List[SafetyAlert]:
    raised = []
    if speed_mps:
        speed_kmh = speed_mps * 3.6
        if speed_kmh > CONFIG["SPEED_THRESHOLD_KMH"]:
            raised.append(raise_alert(db, user, AlertType.speed, lat, lng, ride, {
                "speed": round(speed_kmh, 1), "threshold": CONFIG["SPEED_THRESHOLD_KMH"],
            }))

    if ride is not None and ride.status == RideStatus.in_progress:
        deviation = route_deviation_m(ride, lat, lng)
        if deviation > CONFIG["ROUTE_DEVIATION_THRESHOLD_M"]:
            raised.append(raise_alert(db, user, AlertType.route_deviation, lat, lng, ride, {
                "distance": round(deviation, 1), "threshold": CONFIG["ROUTE_DEVIATION_THRESHOLD_M"],
            }))

    if battery_level is not None and not charging and battery_level <= CONFIG["BATTERY_THRESHOLD_PERCENT"]:
        raised.append(raise_alert(db, user, AlertType.battery_low, lat, lng, ride, {
            "level": battery_level, "threshold": CONFIG["BATTERY_THRESHOLD_PERCENT"],
        }))

    db.commit()
    for alert in raised:
        db.refresh(alert)
    return raised


def check_inactivity(db: Session, ride: Ride, now: Optional[datetime] = None) -> Optional[SafetyAlert]:
    """Alert the rider when the captain of an in-progress ride stops reporting."""
    if ride.status != RideStatus.in_progress or ride.captain is None:
        return None
    last_seen = ride.captain.last_location_at or ride.started_at
    if last_seen is None:
        return None
    idle = ((now or datetime.utcnow()) - last_seen).total_seconds()
    if idle <= CONFIG["INACTIVITY_THRESHOLD_SECONDS"]:
        return None
    alert = raise_alert(db, ride.rider, AlertType.inactivity, ride.captain_lat, ride.captain_lng, ride, {
        "idle_seconds": int(idle), "threshold": CONFIG["INACTIVITY_THRESHOLD_SECONDS"],
    })
    db.commit()
    db.refresh(alert)
    return alert


# --- Ride sharing ---
def share_ride(db: Session, user: User, ride: Ride) -> RideShare:
    if ride.rider_id != user.id:
        raise Forbidden("Only the rider can share this ride")
    if ride.status not in (RideStatus.pending,) + ACTIVE_RIDE_STATUSES:
        raise ValidationFailed("Only open rides can be shared")
    share = db.query(RideShare).filter(RideShare.ride_id == ride.id, RideShare.is_active.is_(True)).first()
    if share:
        return share
    share = RideShare(ride_id=ride.id, user_id=user.id, last_lat=ride.captain_lat, last_lng=ride.captain_lng)
    db.add(share)
    db.flush()
    _notify_contacts(db, user, f"{user.full_name} shared a ride with you: /api/share/{share.token}", share=share)
    db.commit()
    db.refresh(share)
    return share


def stop_sharing(db: Session, user: User, ride_id: int) -> int:
    shares = db.query(RideShare).filter(
        RideShare.ride_id == ride_id, RideShare.user_id == user.id, RideShare.is_active.is_(True)
    ).all()
    for share in shares:
        share.is_active = False
        share.stopped_at = datetime.utcnow()
    db.commit()
    return len(shares)


def update_shared_location(db: Session, ride: Ride, lat: float, lng: float):
    db.query(RideShare).filter(RideShare.ride_id == ride.id, RideShare.is_active.is_(True)).update(
        {RideShare.last_lat: lat, RideShare.last_lng: lng}, synchronize_session=False
    )
    db.commit()


def shared_ride_view(db: Session, token: str) -> dict:
    share = db.query(RideShare).filter(RideShare.token == token, RideShare.is_active.is_(True)).first()
    if not share:
        raise NotFound("Shared ride not found")
    ride = share.ride
    return {
        "ride_id": ride.id,
        "status": ride.status,
        "pickup_address": ride.pickup_address,
        "drop_address": ride.drop_address,
        "captain_name": ride.captain_name,
        "captain_vehicle_number": ride.captain_vehicle_number,
        "lat": share.last_lat,
        "lng": share.last_lng,
    }
