from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field

from app.config import AdvisorSettings
from app.dependencies import get_context_builder, get_orchestrator, get_settings
from app.services.advisor import (
    AdviceOrchestrator,
    ContextSource,
    FinancialSnapshot,
    NoFinancialDataError,
    UserContextBuilder,
    build_context_note,
)
from app.services.auth import current_user

router = APIRouter(tags=["advice"])


class AdviceRequest(BaseModel):
    message: str = Field(min_length=1, max_length=4000)
    context: FinancialSnapshot | None = None
    context_source: ContextSource = ContextSource.MUST_REFRESH


@router.get("/context")
def get_context(
    user=Depends(current_user),
    builder: UserContextBuilder = Depends(get_context_builder),
    settings: AdvisorSettings = Depends(get_settings),
):
    snapshot = builder.get_context(user.get("sub"))
    return {
        "snapshot": snapshot.model_dump(mode="json"),
        "context_note": build_context_note(snapshot, settings.currency, settings.locale),
    }


@router.post("/advice")
def generate_advice(
    payload: AdviceRequest,
    user=Depends(current_user),
    orchestrator: AdviceOrchestrator = Depends(get_orchestrator),
):
    try:
        advice = orchestrator.generate_advice(
            payload.message,
            payload.context,
            user_id=user.get("sub"),
            source=payload.context_source,
        )
    except NoFinancialDataError as exc:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)) from exc
    return advice.model_dump(mode="json")
