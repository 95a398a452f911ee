from fastapi import APIRouter, Depends, File, UploadFile
from sqlalchemy.orm import Session

from ..database import get_db
from ..models import User
from ..schemas import ProfileUpdate, UserResponse, CaptainResponse
from ..security import get_current_active_user, require_captain
from .. import verification
from .auth import _normalise_phone

profile_router = APIRouter(prefix="/api/profile", tags=["Profile"])


@profile_router.get("", response_model=UserResponse)
def api_get_profile(user: User = Depends(get_current_active_user)):
    return user


@profile_router.put("", response_model=UserResponse)
def api_update_profile(data: ProfileUpdate, user: User = Depends(get_current_active_user),
                       db: Session = Depends(get_db)):
    if data.full_name is not None:
        user.full_name = data.full_name.strip()
    if data.phone is not None:
        user.phone = _normalise_phone(data.phone)
    db.commit()
    db.refresh(user)
    return user


@profile_router.post("/document", response_model=UserResponse)
def api_upload_document(document: UploadFile = File(...), user: User = Depends(get_current_active_user),
                        db: Session = Depends(get_db)):
    content, data = verification.check_identity_document(document)
    user.document_url = verification.store_upload(content, document.filename, "documents", f"identity_{user.id}")
    user.document_verified = True
    user.document_type = data.document_type
    user.document_number = data.document_number
    user.gender = data.gender or None
    db.commit()
    db.refresh(user)
    return user


@profile_router.post("/face", response_model=UserResponse)
def api_upload_face(photo: UploadFile = File(...), user: User = Depends(get_current_active_user),
                    db: Session = Depends(get_db)):
    content = verification.check_face(photo)
    user.face_url = verification.store_upload(content, photo.filename, "faces", f"face_{user.id}")
    user.face_verified = True
    db.commit()
    db.refresh(user)
    return user


@profile_router.get("/captain", response_model=CaptainResponse)
def api_captain_profile(captain=Depends(require_captain)):
    return captain
