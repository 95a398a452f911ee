from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from .config import CONFIG
from .errors import ValidationFailed
from .models import Captain, Ride, RideStatus


def breakdown(total_amount: float, commission_percentage: Optional[float] = None) -> dict:
    """Split a fare into platform commission and the captain's share."""
    pct = CONFIG["COMMISSION_PERCENTAGE"] if commission_percentage is None else commission_percentage
    if total_amount < 0:
        raise ValidationFailed("Amount cannot be negative")
    if not 0 <= pct <= 100:
        raise ValidationFailed("Commission percentage must be between 0 and 100")
    commission = round(total_amount * pct / 100.0, 2)
    return {
        "total_amount": round(total_amount, 2),
        "commission_percentage": pct,
        "commission_amount": commission,
        "captain_earnings": round(total_amount - commission, 2),
    }


def month_bounds(year: int, month: int):
    if not 1 <= month <= 12:
        raise ValidationFailed("Month must be between 1 and 12")
    start = datetime(year, month, 1)
    end = datetime(year + 1, 1, 1) if month == 12 else datetime(year, month + 1, 1)
    return start, end


def payout_date(year: int, month: int) -> datetime:
    # Payouts run on the 1st of the following month.
    return month_bounds(year, month)[1]


def monthly_earnings(db: Session, captain: Captain, year: int, month: int) -> dict:
    start, end = month_bounds(year, month)
    rides = db.query(Ride).filter(
        Ride.captain_id == captain.id,
        Ride.status == RideStatus.completed,
        Ride.completed_at >= start,
        Ride.completed_at < end,
    ).order_by(Ride.completed_at.desc()).all()

    per_ride = []
    for r in rides:
        split = breakdown(r.fare)
        per_ride.append({
            "ride_id": r.id,
            "completed_at": r.completed_at.isoformat(),
            "pickup_address": r.pickup_address,
            "drop_address": r.drop_address,
            "distance_km": r.distance_km,
            "fare": split["total_amount"],
            "commission": split["commission_amount"],
            "earnings": split["captain_earnings"],
        })

    # Totals are sums of the per-ride splits.
    return {
        "year": year,
        "month": month,
        "ride_count": len(rides),
        "gross": round(sum(r["fare"] for r in per_ride), 2),
        "commission": round(sum(r["commission"] for r in per_ride), 2),
        "net": round(sum(r["earnings"] for r in per_ride), 2),
        "payout_date": payout_date(year, month),
        "rides": per_ride,
    }
