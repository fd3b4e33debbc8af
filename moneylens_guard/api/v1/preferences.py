"""GET/PUT /v1/preferences - spending thresholds and toggles"""

from dataclasses import asdict

from fastapi import APIRouter, Depends

from moneylens_guard.api.dependencies import get_context
from moneylens_guard.api.v1.schemas import PreferencesSchema, PreferencesUpdate
from moneylens_guard.context import GuardContext

router = APIRouter()


@router.get("/preferences", response_model=PreferencesSchema)
async def get_preferences(context: GuardContext = Depends(get_context)):
    return PreferencesSchema(**asdict(context.preferences))


@router.put("/preferences", response_model=PreferencesSchema)
async def update_preferences(
    request_body: PreferencesUpdate,
    context: GuardContext = Depends(get_context),
):
    """Apply a partial update; persisted immediately, never fatal on store failure"""
    changes = request_body.model_dump(exclude_none=True)
    preferences = context.update_preferences(**changes)
    return PreferencesSchema(**asdict(preferences))
