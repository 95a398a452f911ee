import re
import logging

from fastapi import APIRouter, Depends, HTTPException, status, Form, File, UploadFile
from fastapi.responses import JSONResponse
from pydantic import EmailStr
from sqlalchemy.orm import Session

from ..database import get_db
from ..errors import ValidationFailed
from ..models import User, UserRole, Captain, VehicleType
from ..schemas import UserCreate, UserLogin, FirebaseLogin, UserResponse, TokenResponse
from ..security import (
    get_password_hash, verify_password, create_access_token, verify_firebase_token,
    get_current_active_user
)
from .. import verification

logger = logging.getLogger(__name__)

auth_router = APIRouter(prefix="/api/auth", tags=["Authentication"])


def _token_response(user: User, status_code: int = status.HTTP_200_OK) -> JSONResponse:
    access_token = create_access_token({"sub": str(user.id)})
    response = JSONResponse(
        status_code=status_code,
        content=TokenResponse(access_token=access_token, role=user.role).model_dump(mode="json"),
    )
    response.set_cookie("access_token", access_token, httponly=True, samesite="lax", secure=False, path="/")
    return response


def _ensure_email_free(db: Session, email: str):
    if db.query(User).filter(User.email == email).first():
        raise HTTPException(status_code=400, detail="Email already registered")


def _normalise_phone(phone: str) -> str:
    digits = re.sub(r"[^0-9]", "", phone or "")
    if len(digits) != 10:
        raise ValidationFailed("Please enter a valid 10-digit phone number")
    return digits


@auth_router.post("/register", response_model=TokenResponse, status_code=status.HTTP_201_CREATED)
def api_register(user_data: UserCreate, db: Session = Depends(get_db)):
    _ensure_email_free(db, user_data.email)
    user = User(
        full_name=user_data.full_name,
        email=user_data.email,
        phone=_normalise_phone(user_data.phone) if user_data.phone else None,
        hashed_password=get_password_hash(user_data.password),
        role=UserRole.rider,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    logger.info("Rider %s registered", user.id)
    return _token_response(user, status.HTTP_201_CREATED)


@auth_router.post("/captain/register", response_model=TokenResponse, status_code=status.HTTP_201_CREATED)
def api_captain_register(
    full_name: str = Form(...), email: EmailStr = Form(...), phone: str = Form(...),
    password: str = Form(...), confirm_password: str = Form(...),
    vehicle_number: str = Form(...), vehicle_model: str = Form(...),
    vehicle_type: VehicleType = Form(VehicleType.bike),
    license_doc: UploadFile = File(...), aadhar_doc: UploadFile = File(...),
    db: Session = Depends(get_db),
):
    if not full_name.strip():
        raise ValidationFailed("Full name is required")
    if not vehicle_number.strip() or not vehicle_model.strip():
        raise ValidationFailed("Vehicle number and model are required")
    if len(password) < 6:
        raise ValidationFailed("Password must be at least 6 characters")
    if password != confirm_password:
        raise ValidationFailed("Passwords do not match")
    phone = _normalise_phone(phone)
    _ensure_email_free(db, email)

    # Both documents are checked before anything is written.
    license_content, license_data = verification.check_driving_license(license_doc)
    aadhar_content, aadhar_data = verification.check_aadhar(aadhar_doc)

    user = User(full_name=full_name.strip(), email=email, phone=phone,
                hashed_password=get_password_hash(password), role=UserRole.captain)
    db.add(user)
    db.flush()
    captain = Captain(
        user_id=user.id,
        vehicle_number=vehicle_number.strip().upper(),
        vehicle_model=vehicle_model.strip(),
        vehicle_type=vehicle_type,
        driving_license_verified=True,
        driving_license_number=license_data.document_number,
        driving_license_url=verification.store_upload(
            license_content, license_doc.filename, "documents", f"license_{user.id}"),
        aadhar_verified=True,
        aadhar_number=aadhar_data.document_number,
        aadhar_url=verification.store_upload(
            aadhar_content, aadhar_doc.filename, "documents", f"aadhar_{user.id}"),
    )
    db.add(captain)
    db.commit()
    db.refresh(user)
    logger.info("Captain %s registered with vehicle %s", captain.id, captain.vehicle_number)
    return _token_response(user, status.HTTP_201_CREATED)


@auth_router.post("/login", response_model=TokenResponse)
def api_login(user_data: UserLogin, db: Session = Depends(get_db)):
    user = db.query(User).filter(User.email == user_data.email).first()
    if not user or not user.hashed_password or not verify_password(user_data.password, user.hashed_password):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Incorrect email or password")
    if not user.is_active:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Account disabled")
    return _token_response(user)


@auth_router.post("/firebase-login", response_model=TokenResponse)
def api_firebase_login(data: FirebaseLogin, db: Session = Depends(get_db)):
    decoded = verify_firebase_token(data.firebase_token)
    uid, email = decoded["uid"], decoded.get("email")
    if not email:
        raise HTTPException(status.HTTP_400_BAD_REQUEST, "Firebase account has no email address")
    user = db.query(User).filter(User.firebase_uid == uid).first()
    if not user:
        user = db.query(User).filter(User.email == email).first()
        if user:
            user.firebase_uid = uid
        else:
            user = User(firebase_uid=uid, full_name=decoded.get("name", "New User"), email=email,
                        role=UserRole.rider)
            db.add(user)
    db.commit()
    db.refresh(user)
    return _token_response(user)


@auth_router.post("/logout")
def api_logout():
    res = JSONResponse({"message": "Logged out"})
    res.delete_cookie("access_token", path="/")
    return res


@auth_router.get("/me", response_model=UserResponse)
def api_me(user: User = Depends(get_current_active_user)):
    return user
