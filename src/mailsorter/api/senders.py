"""Sender preference API."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from mailsorter.agent import SortingAgent
from mailsorter.api.deps import get_agent
from mailsorter.api.models import UpdateSenderPreferenceRequest
from mailsorter.models import SenderPreference

router = APIRouter(prefix="/api/senders", tags=["senders"])


@router.get("", response_model=list[SenderPreference])
def api_list_senders(agent: SortingAgent = Depends(get_agent)) -> list[SenderPreference]:
    return agent.list_senders()


@router.put("/{preference_id}/preferences", response_model=SenderPreference)
def api_update_sender_preference(
    preference_id: str,
    body: UpdateSenderPreferenceRequest,
    agent: SortingAgent = Depends(get_agent),
) -> SenderPreference:
    return agent.update_sender_preference(
        preference_id,
        auto_apply=body.auto_apply,
        default_action=body.default_action,
        default_label=body.default_label,
    )
