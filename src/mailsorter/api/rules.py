"""Sorting rules API."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Response

from mailsorter.agent import SortingAgent
from mailsorter.api.deps import get_agent
from mailsorter.api.models import ApplyRulesRequest, SortingRuleRequest
from mailsorter.models import RuleApplication, SortingRule

router = APIRouter(prefix="/api/rules", tags=["rules"])


@router.get("", response_model=list[SortingRule])
def api_list_rules(agent: SortingAgent = Depends(get_agent)) -> list[SortingRule]:
    return agent.list_rules()


@router.post("", response_model=SortingRule, status_code=201)
def api_create_rule(body: SortingRuleRequest, agent: SortingAgent = Depends(get_agent)) -> SortingRule:
    try:
        return agent.create_rule(
            name=body.name,
            conditions=body.conditions,
            actions=body.actions,
            priority=body.priority,
            enabled=body.enabled,
        )
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


@router.post("/apply", response_model=list[RuleApplication])
async def api_apply_rules(
    body: ApplyRulesRequest, agent: SortingAgent = Depends(get_agent)
) -> list[RuleApplication]:
    try:
        return await agent.apply_rules(body.email_ids)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


@router.put("/{rule_id}", response_model=SortingRule)
def api_update_rule(
    rule_id: str, body: SortingRuleRequest, agent: SortingAgent = Depends(get_agent)
) -> SortingRule:
    try:
        return agent.update_rule(
            rule_id,
            name=body.name,
            conditions=body.conditions,
            actions=body.actions,
            priority=body.priority,
            enabled=body.enabled,
        )
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


@router.delete("/{rule_id}", status_code=204)
def api_delete_rule(rule_id: str, agent: SortingAgent = Depends(get_agent)) -> Response:
    agent.delete_rule(rule_id)
    return Response(status_code=204)
