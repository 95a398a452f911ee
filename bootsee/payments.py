"""UPI payment requests.

Payments are confirmed by hand: the rider scans a ``upi://pay`` QR code and
the captain marks the ride paid once the money shows up. There is no gateway
callback to verify the transfer.
"""
import io
import re
import base64
import logging
from datetime import datetime
from typing import Optional
from urllib.parse import quote

import qrcode
from sqlalchemy.orm import Session

from .config import CONFIG
from .errors import ValidationFailed, Forbidden, InvalidTransition, RideConflict
from .models import Captain, Ride, RideStatus, PaymentMethod, PaymentStatus

logger = logging.getLogger(__name__)

UPI_ID_PATTERN = re.compile(r"^[A-Za-z0-9.\-_]{2,256}@[A-Za-z]{2,64}$")


def validate_upi_id(upi_id: str) -> str:
    upi_id = (upi_id or "").strip()
    if not UPI_ID_PATTERN.match(upi_id):
        raise ValidationFailed("Invalid UPI ID; expected something like name@bank")
    return upi_id


def build_upi_url(upi_id: str, payee_name: str, amount: Optional[float] = None, note: str = "Ride Payment") -> str:
    url = f"upi://pay?pa={upi_id}&pn={quote(payee_name, safe='')}"
    if amount:
        url += f"&am={amount:.2f}"
    return url + f"&cu={CONFIG['CURRENCY']}&tn={quote(note, safe='')}"


def qr_data_url(payload: str) -> str:
    qr = qrcode.QRCode(border=1, box_size=8)
    qr.add_data(payload)
    qr.make(fit=True)
    img = qr.make_image(fill_color="black", back_color="white")
    buffer = io.BytesIO()
    img.save(buffer)
    return "data:image/png;base64," + base64.b64encode(buffer.getvalue()).decode("ascii")


def upi_qr(upi_id: Optional[str] = None, payee_name: Optional[str] = None,
           amount: Optional[float] = None, note: str = "Ride Payment") -> dict:
    upi_id = validate_upi_id(upi_id or CONFIG["PLATFORM_UPI_ID"])
    url = build_upi_url(upi_id, payee_name or CONFIG["PLATFORM_PAYEE_NAME"], amount, note)
    return {"upi_url": url, "qr_code": qr_data_url(url), "amount": amount, "upi_id": upi_id}


def set_upi_id(db: Session, captain: Captain, upi_id: str) -> Captain:
    captain.upi_id = validate_upi_id(upi_id)
    db.commit()
    db.refresh(captain)
    return captain


def payment_request(ride: Ride, captain: Captain) -> dict:
    if ride.captain_id != captain.id:
        raise Forbidden("This ride is assigned to another captain")
    return upi_qr(
        captain.upi_id,
        captain.user.full_name if captain.upi_id else None,
        ride.fare,
        f"Ride #{ride.id} payment",
    )


def mark_paid(db: Session, captain: Captain, ride: Ride) -> Ride:
    if ride.captain_id != captain.id:
        raise Forbidden("This ride is assigned to another captain")
    if ride.status != RideStatus.completed:
        raise InvalidTransition("Payment can only be recorded for a completed ride")

    updated = db.query(Ride).filter(
        Ride.id == ride.id, Ride.payment_status == PaymentStatus.pending
    ).update({
        Ride.payment_status: PaymentStatus.completed,
        Ride.payment_method: PaymentMethod.upi,
        Ride.payment_amount: ride.fare,
        Ride.payment_upi_id: captain.upi_id or CONFIG["PLATFORM_UPI_ID"],
        Ride.paid_at: datetime.utcnow(),
    }, synchronize_session=False)
    if updated == 0:
        db.rollback()
        raise RideConflict("Payment already recorded for this ride")
    db.commit()
    db.refresh(ride)
    logger.info("Ride %s marked paid (%.2f) by captain %s", ride.id, ride.fare, captain.id)
    return ride
