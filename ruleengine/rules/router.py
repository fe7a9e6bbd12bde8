"""API routes for rule management and execution."""

from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import PlainTextResponse
from sqlmodel import Session

from ruleengine.core.database import get_session
from ruleengine.core.tenancy import get_tenant_id
from .models import RuleDefinition
from .schemas import ExecuteRulesRequest, ExecuteRulesResponse, MatchPayloadResponse, RuleRead
from .service import RuleService

router = APIRouter(prefix="/api/rules", tags=["rules"])


def get_service(
    session: Session = Depends(get_session),
    tenant_id: str = Depends(get_tenant_id),
) -> RuleService:
    return RuleService(session, tenant_id)


@router.get("", response_model=list[RuleRead])
def list_rules(
    schema_id: int | None = Query(None, alias="schemaId"),
    service: RuleService = Depends(get_service),
) -> list[RuleRead]:
    return [service.to_read(record) for record in service.list_rules(schema_id)]


@router.post("/execute", response_model=ExecuteRulesResponse)
def execute_rules(request: ExecuteRulesRequest, service: RuleService = Depends(get_service)) -> ExecuteRulesResponse:
    """Run rules over a batch of facts.

    Rule-level failures are reported in the body with ``success: false``;
    only malformed requests produce an error status.
    """
    return service.execute(request)


@router.post("", response_model=RuleRead, status_code=status.HTTP_201_CREATED)
def create_rule(definition: RuleDefinition, service: RuleService = Depends(get_service)) -> RuleRead:
    return service.to_read(service.create_rule(definition))


@router.get("/{rule_id}", response_model=RuleRead)
def get_rule(rule_id: int, service: RuleService = Depends(get_service)) -> RuleRead:
    return service.to_read(service.get_rule(rule_id))


@router.put("/{rule_id}", response_model=RuleRead)
def update_rule(rule_id: int, definition: RuleDefinition, service: RuleService = Depends(get_service)) -> RuleRead:
    return service.to_read(service.update_rule(rule_id, definition))


@router.delete("/{rule_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_rule(rule_id: int, service: RuleService = Depends(get_service)) -> None:
    service.delete_rule(rule_id)


@router.post("/{rule_id}/toggle", response_model=RuleRead)
def toggle_rule(rule_id: int, service: RuleService = Depends(get_service)) -> RuleRead:
    return service.to_read(service.toggle_rule(rule_id))


@router.post("/{rule_id}/regenerate", response_model=RuleRead)
def regenerate_rule(rule_id: int, service: RuleService = Depends(get_service)) -> RuleRead:
    return service.to_read(service.regenerate(rule_id))


@router.get("/{rule_id}/drl", response_class=PlainTextResponse)
def get_rule_text(rule_id: int, service: RuleService = Depends(get_service)) -> str:
    return service.render(rule_id)


@router.get("/{rule_id}/match-payload", response_model=MatchPayloadResponse)
def get_match_payload(rule_id: int, service: RuleService = Depends(get_service)) -> MatchPayloadResponse:
    return service.match_payload(rule_id)
