"""Smart label (label taxonomy) API."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException

from mailsorter.agent import SortingAgent
from mailsorter.api.deps import get_agent
from mailsorter.api.models import CreateSmartLabelRequest
from mailsorter.models import LabelEntry

router = APIRouter(prefix="/api/smart-labels", tags=["smart-labels"])


@router.get("", response_model=list[LabelEntry])
def api_list_smart_labels(agent: SortingAgent = Depends(get_agent)) -> list[LabelEntry]:
    return agent.list_labels()


@router.post("", response_model=LabelEntry, status_code=201)
async def api_create_smart_label(
    body: CreateSmartLabelRequest, agent: SortingAgent = Depends(get_agent)
) -> LabelEntry:
    if not body.name.strip():
        raise HTTPException(status_code=400, detail="Label name required")
    return await agent.create_label(body.name, description=body.description, keywords=body.keywords)
