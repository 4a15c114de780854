# survey_relay/main.py
import logging
from pathlib import Path
from typing import Optional

import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from survey_relay.config import Settings
from survey_relay.errors import BackendError, ValidationError
from survey_relay.logging_setup import setup_logging
from survey_relay.routers.survey import router as survey_router
from survey_relay.services.fields import FIELD_ORDER, load_schema, reconcile, schema_labels
from survey_relay.services.relay import SheetRelay

logger = logging.getLogger(__name__)


# ---------- Error rendering ----------

async def _validation_error(request: Request, exc: ValidationError):
    return JSONResponse(status_code=400, content={"success": False, "message": str(exc)})


async def _backend_error(request: Request, exc: BackendError):
    logger.error("Failed to save survey submission", exc_info=exc)
    body = {"success": False, "message": "processing error"}
    # error details stay out of production responses
    if not request.app.state.settings.is_production:
        body["error"] = str(exc)
    return JSONResponse(status_code=500, content=body)


# ---------- App factory ----------

def create_app(settings: Optional[Settings] = None, relay: Optional[SheetRelay] = None) -> FastAPI:
    settings = settings or Settings()
    setup_logging(settings.LOG_LEVEL)

    app = FastAPI(title="Survey Relay")
    app.state.settings = settings
    app.state.relay = relay or SheetRelay(settings)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=False, allow_methods=["*"], allow_headers=["*"],
    )
    app.add_exception_handler(ValidationError, _validation_error)
    app.add_exception_handler(BackendError, _backend_error)

    @app.get("/health")
    def health():
        return {"status": "ok"}

    app.include_router(survey_router)

    if settings.SURVEY_SCHEMA_PATH:
        reconcile(FIELD_ORDER, schema_labels(load_schema(settings.SURVEY_SCHEMA_PATH)))

    # Survey page and renderer assets; mounted last so API routes win
    if Path(settings.STATIC_DIR).is_dir():
        app.mount("/", StaticFiles(directory=settings.STATIC_DIR, html=True), name="static")

    logger.info("Survey relay ready in %s mode", settings.APP_ENV)
    return app


app = create_app()


if __name__ == '__main__':
    uvicorn.run(app, host='0.0.0.0', port=app.state.settings.PORT)
