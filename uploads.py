import os
import uuid

from fastapi import HTTPException, UploadFile

UPLOADS_DIR = os.getenv("UPLOADS_DIR", os.path.join(os.getcwd(), "uploads"))

DOCUMENT_EXTENSIONS = (".pdf", ".png", ".jpg", ".jpeg")


def save_upload(file: UploadFile, prefix: str, allowed=DOCUMENT_EXTENSIONS) -> str:
    """Write `file` under UPLOADS_DIR and return its public URL."""
    name = (file.filename or "").lower()
    ext = os.path.splitext(name)[1]
    if ext not in allowed:
        raise HTTPException(status_code=400, detail="Only PDF or image files allowed")

    os.makedirs(UPLOADS_DIR, exist_ok=True)
    filename = f"{prefix}_{uuid.uuid4().hex[:12]}{ext}"
    with open(os.path.join(UPLOADS_DIR, filename), "wb") as f:
        f.write(file.file.read())
    return f"/uploads/{filename}"
