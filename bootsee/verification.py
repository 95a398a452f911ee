"""Identity document and face checks.

These are placeholders for a real document/face model: the outcome is
derived from markers in the uploaded filename so that every branch of the
signup flow can be exercised by hand. Unlike a soft-fail UI flow, a failed
check here is always reported as a failure.
"""
import os
import logging
from typing import Optional

from fastapi import UploadFile

from .config import CONFIG
from .errors import VerificationError, ValidationFailed
from .schemas import DocumentData

logger = logging.getLogger(__name__)

INVALID_MARKERS = ("invalid", "fake", "unverified")
IMAGE_CONTENT_TYPES = ("image/jpeg", "image/png", "image/webp")
DOCUMENT_CONTENT_TYPES = IMAGE_CONTENT_TYPES + ("application/pdf",)


def extract_document_data(filename: str) -> DocumentData:
    name = (filename or "").lower()

    gender = ""
    if "female" in name:
        gender = "female"
    elif "male" in name:
        gender = "male"

    if "aadhar" in name or "aadhaar" in name:
        document_type = "Aadhar Card"
    elif "pan" in name:
        document_type = "PAN Card"
    elif "driv" in name or "license" in name or "dl" in name:
        document_type = "Driving License"
    else:
        document_type = "Unknown"

    data = DocumentData(
        full_name="Test User",
        gender=gender,
        date_of_birth="01/01/1990",
        document_number="ABCD1234XYZ",
        document_type=document_type,
        is_verified=not any(marker in name for marker in INVALID_MARKERS),
    )
    logger.info("Document processed: type=%s gender=%s verified=%s",
                data.document_type, data.gender or "-", data.is_verified)
    return data


def verify_user_eligibility(data: Optional[DocumentData]) -> bool:
    return data is not None and data.is_verified is not False


def verify_driving_license(data: Optional[DocumentData]) -> bool:
    if not data or not data.document_type:
        return False
    kind = data.document_type.lower()
    return "driving" in kind or "license" in kind


def verify_aadhar(data: Optional[DocumentData]) -> bool:
    return bool(data) and data.document_type == "Aadhar Card"


def verify_face(filename: str, content_type: Optional[str], size: int) -> bool:
    if size <= 0:
        return False
    if content_type not in IMAGE_CONTENT_TYPES:
        return False
    name = (filename or "").lower()
    return not any(marker in name for marker in INVALID_MARKERS)


# --- Upload handling ---
def read_upload(upload: UploadFile, allowed_types=DOCUMENT_CONTENT_TYPES) -> bytes:
    if not upload or not upload.filename:
        raise ValidationFailed("A file is required")
    if upload.content_type not in allowed_types:
        raise ValidationFailed(f"Unsupported file type: {upload.content_type}")
    content = upload.file.read()
    if not content:
        raise ValidationFailed("Uploaded file is empty")
    if len(content) > CONFIG["MAX_UPLOAD_BYTES"]:
        raise ValidationFailed("File size should be less than 5MB")
    return content


def store_upload(content: bytes, filename: str, subdir: str, stem: str) -> str:
    """Write an upload below UPLOADS_DIR and return its public /static URL."""
    ext = os.path.splitext(filename)[1].lower()
    directory = os.path.join(CONFIG["UPLOADS_DIR"], subdir)
    os.makedirs(directory, exist_ok=True)
    with open(os.path.join(directory, f"{stem}{ext}"), "wb") as buffer:
        buffer.write(content)
    return f"/static/{subdir}/{stem}{ext}"


def check_identity_document(upload: UploadFile) -> tuple:
    """Validate an identity document upload; returns (content, data)."""
    content = read_upload(upload)
    data = extract_document_data(upload.filename)
    if not verify_user_eligibility(data):
        raise VerificationError("Document could not be verified")
    return content, data


def check_driving_license(upload: UploadFile) -> tuple:
    content, data = check_identity_document(upload)
    if not verify_driving_license(data):
        raise VerificationError("Please upload a valid driving license")
    return content, data


def check_aadhar(upload: UploadFile) -> tuple:
    content, data = check_identity_document(upload)
    if not verify_aadhar(data):
        raise VerificationError("Please upload a valid Aadhar card")
    return content, data


def check_face(upload: UploadFile) -> bytes:
    content = read_upload(upload, IMAGE_CONTENT_TYPES)
    if not verify_face(upload.filename, upload.content_type, len(content)):
        raise VerificationError("Face could not be verified")
    return content
