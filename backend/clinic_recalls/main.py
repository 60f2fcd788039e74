import logging
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from clinic_recalls.core.settings import settings, validate_settings
from clinic_recalls.db.session import SessionLocal, engine
from clinic_recalls.models import Base
from clinic_recalls.routers.cron import router as cron_router
from clinic_recalls.services.email_templates import ensure_default_templates

app = FastAPI(title="Clinic Recalls API", version="0.1.0")
logger = logging.getLogger("clinic_recalls.startup")


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    request_id = request.headers.get("x-request-id")
    logger.exception("Unhandled server error", extra={"request_id": request_id})
    payload = {"detail": "Internal server error"}
    if request_id:
        payload["request_id"] = request_id
    return JSONResponse(status_code=500, content=payload)


@app.on_event("startup")
def startup():
    validate_settings(settings)
    Base.metadata.create_all(bind=engine)

    db: Session = SessionLocal()
    try:
        created_templates = ensure_default_templates(db)
        if created_templates:
            logger.info("Default email templates ensured (%s added).", created_templates)
    finally:
        db.close()


@app.get("/health")
def health():
    return {"status": "ok"}


app.include_router(cron_router)
