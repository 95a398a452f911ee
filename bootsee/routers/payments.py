from fastapi import APIRouter, Depends

from .. import payments
from ..models import User
from ..schemas import UpiQrRequest, UpiQrResponse
from ..security import get_current_active_user

payments_router = APIRouter(prefix="/api/payments", tags=["Payments"])


@payments_router.post("/upi-qr", response_model=UpiQrResponse)
def api_upi_qr(req: UpiQrRequest, user: User = Depends(get_current_active_user)):
    return payments.upi_qr(req.upi_id, req.payee_name, req.amount, req.note)
