from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from app.dependencies import get_quick_action_executor
from app.services.advisor import QuickActionExecutor
from app.services.auth import current_user

router = APIRouter(prefix="/quick-actions", tags=["quick-actions"])


class QuickActionPayload(BaseModel):
    type: str = Field(min_length=1)
    label: str = ""
    icon: str = ""


class QuickActionRequest(BaseModel):
    action: QuickActionPayload
    extra: Dict[str, Any] = Field(default_factory=dict)


@router.post("")
def apply_quick_action(
    payload: QuickActionRequest,
    user=Depends(current_user),
    executor: QuickActionExecutor = Depends(get_quick_action_executor),
):
    result = executor.apply(payload.action.model_dump(), user.get("sub"), payload.extra)
    return result.model_dump(mode="json")
