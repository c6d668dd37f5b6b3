"""Classification and suggestion API."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Response

from mailsorter.agent import SortingAgent
from mailsorter.api.deps import get_agent
from mailsorter.api.models import (
    AnalyzeRequest,
    AnalyzeSenderRequest,
    ApplyBulkRequest,
    ApplyStatusResponse,
    ApplySuggestionRequest,
)
from mailsorter.models import BulkResult, SenderAnalysis, Suggestion, SuggestionStatus

router = APIRouter(prefix="/api/ai", tags=["ai"])


@router.post("/analyze", response_model=list[Suggestion])
async def api_analyze(body: AnalyzeRequest, agent: SortingAgent = Depends(get_agent)) -> list[Suggestion]:
    try:
        return await agent.analyze_messages(body.email_ids)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


@router.post("/analyze-sender", response_model=SenderAnalysis)
async def api_analyze_sender(
    body: AnalyzeSenderRequest, agent: SortingAgent = Depends(get_agent)
) -> SenderAnalysis:
    try:
        return await agent.analyze_sender(body.sender_email)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


@router.post("/apply", response_model=ApplyStatusResponse)
async def api_apply(
    body: ApplySuggestionRequest, agent: SortingAgent = Depends(get_agent)
) -> ApplyStatusResponse:
    await agent.apply_suggestion(body.suggestion_id)
    return ApplyStatusResponse(status="applied")


@router.post("/apply-bulk", response_model=BulkResult)
async def api_apply_bulk(body: ApplyBulkRequest, agent: SortingAgent = Depends(get_agent)) -> BulkResult:
    try:
        return await agent.apply_bulk(body.sender_email, body.action, body.label_name)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


@router.get("/suggestions", response_model=list[Suggestion])
def api_list_suggestions(
    status: SuggestionStatus = SuggestionStatus.PENDING,
    agent: SortingAgent = Depends(get_agent),
) -> list[Suggestion]:
    return agent.list_suggestions(status)


@router.post("/suggestions/{suggestion_id}/reject", status_code=204)
def api_reject_suggestion(suggestion_id: str, agent: SortingAgent = Depends(get_agent)) -> Response:
    agent.reject_suggestion(suggestion_id)
    return Response(status_code=204)
