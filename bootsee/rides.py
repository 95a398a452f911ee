"""Ride lifecycle.

All status changes go through ``_compare_and_set``: an UPDATE guarded by the
status the caller observed. Two captains accepting the same request race on
that guard and exactly one of them wins; the other gets ``RideConflict``.
"""
import logging
from datetime import datetime
from typing import List, Optional

from sqlalchemy import exists
from sqlalchemy.orm import Session, aliased

from . import earnings, geo
from .errors import NotFound, Forbidden, RideConflict, InvalidTransition, ValidationFailed
from .models import (
    Ride, RideStatus, Captain, User, UserRole, VehicleType, PaymentMethod,
    ACTIVE_RIDE_STATUSES, OPEN_RIDE_STATUSES
)

logger = logging.getLogger(__name__)

# (from, to) -> roles allowed to make the move
TRANSITIONS = {
    (RideStatus.pending, RideStatus.accepted): {UserRole.captain},
    (RideStatus.pending, RideStatus.cancelled): {UserRole.rider},
    (RideStatus.accepted, RideStatus.in_progress): {UserRole.captain},
    (RideStatus.accepted, RideStatus.cancelled): {UserRole.rider, UserRole.captain},
    (RideStatus.in_progress, RideStatus.completed): {UserRole.captain},
}


def check_transition(current: RideStatus, target: RideStatus, actor: UserRole):
    allowed = TRANSITIONS.get((current, target))
    if allowed is None:
        raise InvalidTransition(f"Cannot move ride from {current.value} to {target.value}")
    if actor not in allowed:
        raise Forbidden(f"A {actor.value} cannot move a ride from {current.value} to {target.value}")


def _compare_and_set(db: Session, ride: Ride, expected: RideStatus, values: dict, *guards) -> Ride:
    updated = db.query(Ride).filter(Ride.id == ride.id, Ride.status == expected, *guards).update(
        values, synchronize_session=False
    )
    if updated == 0:
        db.rollback()
        raise RideConflict("Ride was updated by someone else; refresh and try again")
    return ride


def _captain_is_free(captain: Captain):
    # At most one accepted/in_progress ride per captain, checked in the UPDATE itself.
    busy = aliased(Ride)
    return ~exists().where(busy.captain_id == captain.id, busy.status.in_(ACTIVE_RIDE_STATUSES))


def get_ride(db: Session, ride_id: int) -> Ride:
    ride = db.query(Ride).filter(Ride.id == ride_id).first()
    if not ride:
        raise NotFound("Ride not found")
    return ride


def get_ride_for_user(db: Session, ride_id: int, user: User) -> Ride:
    ride = get_ride(db, ride_id)
    if ride.rider_id == user.id:
        return ride
    if user.captain and ride.captain_id == user.captain.id:
        return ride
    # Captains may look at requests they could still accept.
    if user.role == UserRole.captain and ride.status == RideStatus.pending:
        return ride
    raise NotFound("Ride not found")


def _assigned(ride: Ride, captain: Captain):
    if ride.captain_id != captain.id:
        raise Forbidden("This ride is assigned to another captain")


# --- Rider side ---
def request_ride(db: Session, rider: User, pickup, drop, pickup_address="", drop_address="",
                 vehicle_type=VehicleType.bike, payment_method=PaymentMethod.cash) -> Ride:
    if tuple(pickup) == tuple(drop):
        raise ValidationFailed("Pickup and drop locations must differ")
    if active_ride_for_rider(db, rider) is not None:
        raise RideConflict("You already have an open ride request")

    estimate = geo.quote(pickup, drop, vehicle_type)
    ride = Ride(
        rider_id=rider.id,
        pickup_lat=pickup[0], pickup_lng=pickup[1], pickup_address=pickup_address,
        drop_lat=drop[0], drop_lng=drop[1], drop_address=drop_address,
        vehicle_type=vehicle_type,
        distance_km=estimate["distance_km"],
        estimated_minutes=estimate["estimated_minutes"],
        fare=estimate["fare"],
        status=RideStatus.pending,
        payment_method=payment_method,
    )
    db.add(ride)
    db.commit()
    db.refresh(ride)
    logger.info("Ride %s requested by user %s: %.2f km, fare %.2f", ride.id, rider.id, ride.distance_km, ride.fare)
    return ride


def active_ride_for_rider(db: Session, rider: User) -> Optional[Ride]:
    return db.query(Ride).filter(
        Ride.rider_id == rider.id, Ride.status.in_(OPEN_RIDE_STATUSES)
    ).order_by(Ride.created_at.desc()).first()


def rider_history(db: Session, rider: User, limit: int = 50) -> List[Ride]:
    return db.query(Ride).filter(Ride.rider_id == rider.id).order_by(
        Ride.created_at.desc(), Ride.id.desc()
    ).limit(limit).all()


def cancel_ride(db: Session, ride_id: int, user: User, reason: Optional[str] = None) -> Ride:
    ride = get_ride_for_user(db, ride_id, user)
    if user.role == UserRole.rider and ride.rider_id != user.id:
        raise NotFound("Ride not found")
    if user.role == UserRole.captain:
        _assigned(ride, user.captain)
    check_transition(ride.status, RideStatus.cancelled, user.role)

    _compare_and_set(db, ride, ride.status, {
        Ride.status: RideStatus.cancelled,
        Ride.cancelled_by: user.role,
        Ride.cancel_reason: reason,
        Ride.cancelled_at: datetime.utcnow(),
    })
    db.commit()
    db.refresh(ride)
    logger.info("Ride %s cancelled by %s %s", ride.id, user.role.value, user.id)
    return ride


def rate_captain(db: Session, rider: User, ride_id: int, rating: int, feedback: Optional[str] = None) -> Ride:
    if not 1 <= rating <= 5:
        raise ValidationFailed("Rating must be between 1 and 5")
    ride = get_ride(db, ride_id)
    if ride.rider_id != rider.id:
        raise NotFound("Ride not found")
    if ride.status != RideStatus.completed:
        raise InvalidTransition("Only completed rides can be rated")

    updated = db.query(Ride).filter(Ride.id == ride.id, Ride.captain_rating.is_(None)).update({
        Ride.captain_rating: rating,
        Ride.captain_feedback: feedback,
        Ride.rated_at: datetime.utcnow(),
    }, synchronize_session=False)
    if updated == 0:
        db.rollback()
        raise RideConflict("Ride has already been rated")

    # Running mean; both right-hand sides read the pre-update row.
    db.query(Captain).filter(Captain.id == ride.captain_id).update({
        Captain.rating: (Captain.rating * Captain.total_ratings + float(rating)) / (Captain.total_ratings + 1),
        Captain.total_ratings: Captain.total_ratings + 1,
    }, synchronize_session=False)
    db.commit()
    db.refresh(ride)
    return ride


# --- Captain side ---
def set_online(db: Session, captain: Captain, is_online: bool) -> Captain:
    if not is_online and active_ride_for_captain(db, captain) is not None:
        raise RideConflict("Finish your active ride before going offline")
    captain.is_online = is_online
    captain.last_status_change = datetime.utcnow()
    db.commit()
    db.refresh(captain)
    logger.info("Captain %s is now %s", captain.id, "online" if is_online else "offline")
    return captain


def update_location(db: Session, captain: Captain, lat: float, lng: float) -> Optional[Ride]:
    """Store the captain position; returns the active ride it was copied onto, if any."""
    captain.current_lat = lat
    captain.current_lng = lng
    captain.last_location_at = datetime.utcnow()
    ride = active_ride_for_captain(db, captain)
    if ride is not None:
        ride.captain_lat = lat
        ride.captain_lng = lng
    db.commit()
    return ride


def list_pending(db: Session, vehicle_type: Optional[VehicleType] = None) -> List[Ride]:
    q = db.query(Ride).filter(Ride.status == RideStatus.pending)
    if vehicle_type is not None:
        q = q.filter(Ride.vehicle_type == vehicle_type)
    rides = q.all()
    # Newest first; rows without a timestamp sink to the bottom.
    rides.sort(key=lambda r: (r.created_at is not None, r.created_at or datetime.min, r.id), reverse=True)
    return rides


def active_ride_for_captain(db: Session, captain: Captain) -> Optional[Ride]:
    return db.query(Ride).filter(
        Ride.captain_id == captain.id, Ride.status.in_(ACTIVE_RIDE_STATUSES)
    ).first()


def captain_history(db: Session, captain: Captain, limit: int = 50) -> List[Ride]:
    return db.query(Ride).filter(Ride.captain_id == captain.id).order_by(
        Ride.created_at.desc(), Ride.id.desc()
    ).limit(limit).all()


def accept_ride(db: Session, captain: Captain, ride_id: int) -> Ride:
    ride = get_ride(db, ride_id)
    if not captain.is_online:
        raise Forbidden("Go online to accept rides")
    if active_ride_for_captain(db, captain) is not None:
        raise RideConflict("You already have an active ride")
    if ride.rider_id == captain.user_id:
        raise Forbidden("You cannot accept your own ride request")
    if ride.status != RideStatus.pending:
        raise RideConflict("Ride is no longer available")
    check_transition(ride.status, RideStatus.accepted, UserRole.captain)

    _compare_and_set(db, ride, RideStatus.pending, {
        Ride.captain_id: captain.id,
        Ride.status: RideStatus.accepted,
        Ride.accepted_at: datetime.utcnow(),
        Ride.captain_name: captain.user.full_name,
        Ride.captain_phone: captain.user.phone or "",
        Ride.captain_vehicle: captain.vehicle_model,
        Ride.captain_vehicle_number: captain.vehicle_number,
        Ride.captain_lat: captain.current_lat,
        Ride.captain_lng: captain.current_lng,
        Ride.captain_rating_snapshot: captain.rating or 0.0,
    }, _captain_is_free(captain))
    db.commit()
    db.refresh(ride)
    logger.info("Ride %s accepted by captain %s", ride.id, captain.id)
    return ride


def start_ride(db: Session, captain: Captain, ride_id: int) -> Ride:
    ride = get_ride(db, ride_id)
    _assigned(ride, captain)
    check_transition(ride.status, RideStatus.in_progress, UserRole.captain)
    _compare_and_set(db, ride, RideStatus.accepted, {
        Ride.status: RideStatus.in_progress,
        Ride.started_at: datetime.utcnow(),
    })
    db.commit()
    db.refresh(ride)
    logger.info("Ride %s started", ride.id)
    return ride


def complete_ride(db: Session, captain: Captain, ride_id: int) -> Ride:
    ride = get_ride(db, ride_id)
    _assigned(ride, captain)
    check_transition(ride.status, RideStatus.completed, UserRole.captain)
    _compare_and_set(db, ride, RideStatus.in_progress, {
        Ride.status: RideStatus.completed,
        Ride.completed_at: datetime.utcnow(),
    })
    share = earnings.breakdown(ride.fare)["captain_earnings"]
    db.query(Captain).filter(Captain.id == captain.id).update({
        Captain.total_earnings: Captain.total_earnings + share,
        Captain.total_rides: Captain.total_rides + 1,
    }, synchronize_session=False)
    db.commit()
    db.refresh(ride)
    db.refresh(captain)
    logger.info("Ride %s completed; captain %s credited %.2f", ride.id, captain.id, share)
    return ride
