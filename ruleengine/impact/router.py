"""API routes for schema attributes and attribute-change propagation."""

from fastapi import APIRouter, Depends, status
from sqlmodel import Session

from ruleengine.core.database import get_session
from ruleengine.core.tenancy import get_tenant_id
from ruleengine.schema_registry.model import PropertyNode
from ruleengine.schema_registry.router import get_service as get_schema_service
from ruleengine.schema_registry.schemas import AttributeList
from ruleengine.schema_registry.service import SchemaService
from .schemas import ApplyAttributeChangeRequest, ApplyAttributeChangeResponse, AttributeImpact
from .service import ImpactService

router = APIRouter(prefix="/api/schemas/{schema_id}/attributes", tags=["attributes"])


def get_impact_service(
    session: Session = Depends(get_session),
    tenant_id: str = Depends(get_tenant_id),
) -> ImpactService:
    return ImpactService(session, tenant_id)


@router.get("", response_model=AttributeList)
def list_attributes(schema_id: int, service: SchemaService = Depends(get_schema_service)) -> AttributeList:
    schema = service.get_schema(schema_id)
    return AttributeList(schema_id=schema.id, schema_name=schema.name, attributes=service.list_attributes(schema_id))


@router.post("", response_model=PropertyNode, status_code=status.HTTP_201_CREATED)
def add_attribute(
    schema_id: int, attribute: PropertyNode, service: SchemaService = Depends(get_schema_service)
) -> PropertyNode:
    return service.add_attribute(schema_id, attribute)


@router.put("/{name}", response_model=PropertyNode)
def update_attribute(
    schema_id: int, name: str, attribute: PropertyNode, service: SchemaService = Depends(get_schema_service)
) -> PropertyNode:
    """Replace an attribute definition. Rules are not rewritten."""
    return service.update_attribute(schema_id, name, attribute)


@router.delete("/{name}", status_code=status.HTTP_204_NO_CONTENT)
def delete_attribute(schema_id: int, name: str, service: SchemaService = Depends(get_schema_service)) -> None:
    service.delete_attribute(schema_id, name)


@router.get("/{name}/impact", response_model=AttributeImpact)
def analyze_impact(
    schema_id: int, name: str, service: ImpactService = Depends(get_impact_service)
) -> AttributeImpact:
    return service.analyze(schema_id, name)


@router.post("/{name}/apply-changes", response_model=ApplyAttributeChangeResponse)
def apply_changes(
    schema_id: int,
    name: str,
    request: ApplyAttributeChangeRequest,
    service: ImpactService = Depends(get_impact_service),
) -> ApplyAttributeChangeResponse:
    return service.apply_change(schema_id, name, request)
