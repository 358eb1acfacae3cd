import logging
import os
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from database import ensure_indexes, get_db
from errors import register_exception_handlers
from logging_config import setup_logging
from routes import (
    applications,
    auth,
    dashboard,
    dtr,
    evaluations,
    leaves,
    notifications,
    scholar_requests,
    scholars,
    schedules,
    trainees,
    userdata,
    workflow,
)
from uploads import UPLOADS_DIR

setup_logging()
logger = logging.getLogger(__name__)

CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]


@asynccontextmanager
async def lifespan(app: FastAPI):
    db = get_db()
    if db is not None:
        ensure_indexes(db)
    else:
        logger.warning("DATABASE_URL is not set; endpoints that need the database will fail")
    yield


app = FastAPI(title="SASM-IMS API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)

for module in (auth, applications, workflow, trainees, scholars, userdata, schedules, dtr, leaves,
               evaluations, scholar_requests, notifications, dashboard):
    app.include_router(module.router)

# Ensure uploads dir exists before mounting static files
os.makedirs(UPLOADS_DIR, exist_ok=True)
app.mount("/uploads", StaticFiles(directory=UPLOADS_DIR), name="uploads")


# ---------- Basic Routes ----------

@app.get("/")
def root():
    return {"message": "SASM-IMS API running"}


@app.get("/test")
def test_database(db=Depends(get_db)):
    response = {
        "backend": "✅ Running",
        "database": "❌ Not Available",
        "database_url": "✅ Set" if (os.getenv("DATABASE_URL") or os.getenv("MONGO_URI")) else "❌ Not Set",
        "database_name": "✅ Set" if os.getenv("DATABASE_NAME") else "❌ Not Set",
        "connection_status": "Not Connected",
        "collections": [],
    }
    if db is not None:
        try:
            response["collections"] = db.list_collection_names()
            response["database"] = "✅ Connected"
            response["connection_status"] = "Connected"
        except Exception as e:
            logger.warning("Database check failed: %s", e)
            response["database"] = f"❌ Error: {str(e)[:80]}"
    return response
