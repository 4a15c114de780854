# survey_relay/routers/survey.py
import json

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel

from survey_relay.errors import ValidationError
from survey_relay.services.relay import SheetRelay

router = APIRouter(prefix="/api", tags=["survey"])


# ---------- Models ----------

class SubmitOut(BaseModel):
    success: bool
    message: str


# ---------- Helpers ----------

def get_relay(request: Request) -> SheetRelay:
    return request.app.state.relay


async def _read_answers(request: Request) -> dict:
    """Answer Mapping from the body; anything but a non-empty object is rejected."""
    body = await request.body()
    if not body:
        raise ValidationError("missing survey data")
    try:
        answers = json.loads(body)
    except ValueError as exc:
        raise ValidationError("missing survey data") from exc
    if not isinstance(answers, dict) or not answers:
        raise ValidationError("missing survey data")
    return answers


# ---------- Endpoints ----------

@router.post("/survey-submit", response_model=SubmitOut)
async def submit_survey(request: Request, relay: SheetRelay = Depends(get_relay)):
    """
    Append one completed survey to the responses sheet.
    Errors are rendered by the handlers registered in create_app().
    """
    answers = await _read_answers(request)
    await relay.submit(answers)
    return {"success": True, "message": "saved"}
