"""API routes for schemas and schema import."""

from fastapi import APIRouter, Depends, File, Form, UploadFile, status
from sqlmodel import Session

from ruleengine.core.database import get_session
from ruleengine.core.errors import ValidationError
from ruleengine.core.tenancy import get_tenant_id
from .schemas import (
    ExampleImportRequest,
    JsonSchemaImportRequest,
    ManualSchemaRequest,
    OpenApiImportRequest,
    OpenApiPreviewRequest,
    OpenApiPreviewResponse,
    SchemaRead,
    SchemaUpdate,
)
from .service import SchemaService

router = APIRouter(prefix="/api/schemas", tags=["schemas"])


def get_service(
    session: Session = Depends(get_session),
    tenant_id: str = Depends(get_tenant_id),
) -> SchemaService:
    return SchemaService(session, tenant_id)


@router.get("", response_model=list[SchemaRead])
def list_schemas(service: SchemaService = Depends(get_service)) -> list[SchemaRead]:
    return [service.to_read(record) for record in service.list_schemas()]


@router.get("/{schema_id}", response_model=SchemaRead)
def get_schema(schema_id: int, service: SchemaService = Depends(get_service)) -> SchemaRead:
    return service.to_read(service.get_schema(schema_id))


@router.put("/{schema_id}", response_model=SchemaRead)
def update_schema(
    schema_id: int, request: SchemaUpdate, service: SchemaService = Depends(get_service)
) -> SchemaRead:
    return service.to_read(service.update_schema(schema_id, request))


@router.delete("/{schema_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_schema(schema_id: int, service: SchemaService = Depends(get_service)) -> None:
    service.delete_schema(schema_id)


@router.post("/manual", response_model=SchemaRead, status_code=status.HTTP_201_CREATED)
def create_manual_schema(request: ManualSchemaRequest, service: SchemaService = Depends(get_service)) -> SchemaRead:
    return service.to_read(service.create_manual(request))


@router.post("/import/openapi/preview", response_model=OpenApiPreviewResponse)
def preview_openapi(
    request: OpenApiPreviewRequest, service: SchemaService = Depends(get_service)
) -> OpenApiPreviewResponse:
    return OpenApiPreviewResponse(entities=service.preview_openapi(request.content))


@router.post("/import/openapi/content", response_model=list[SchemaRead], status_code=status.HTTP_201_CREATED)
def import_openapi(request: OpenApiImportRequest, service: SchemaService = Depends(get_service)) -> list[SchemaRead]:
    return [service.to_read(record) for record in service.import_openapi(request)]


@router.post("/import/json-schema/content", response_model=SchemaRead, status_code=status.HTTP_201_CREATED)
def import_json_schema(
    request: JsonSchemaImportRequest, service: SchemaService = Depends(get_service)
) -> SchemaRead:
    return service.to_read(service.import_json_schema(request))


@router.post("/import/example", response_model=SchemaRead, status_code=status.HTTP_201_CREATED)
def import_example(request: ExampleImportRequest, service: SchemaService = Depends(get_service)) -> SchemaRead:
    return service.to_read(service.import_example(request))


# =============================================================================
# File uploads
# =============================================================================


def read_upload(file: UploadFile) -> str:
    """Text of an uploaded schema file; empty or non UTF-8 files are rejected."""
    try:
        content = file.file.read().decode("utf-8")
    except UnicodeDecodeError as exc:
        raise ValidationError("Uploaded file must be UTF-8 text", field="file") from exc
    if not content.strip():
        raise ValidationError("Uploaded file is empty", field="file")
    return content


@router.post("/import/openapi", response_model=list[SchemaRead], status_code=status.HTTP_201_CREATED)
def upload_openapi(
    name: str = Form(..., min_length=1),
    selected_entities: list[str] | None = Form(None, alias="selectedEntities"),
    file: UploadFile = File(...),
    service: SchemaService = Depends(get_service),
) -> list[SchemaRead]:
    request = OpenApiImportRequest(
        name=name, content=read_upload(file), selected_entities=selected_entities or []
    )
    return [service.to_read(record) for record in service.import_openapi(request)]


@router.post("/import/json-schema", response_model=SchemaRead, status_code=status.HTTP_201_CREATED)
def upload_json_schema(
    name: str = Form(..., min_length=1),
    file: UploadFile = File(...),
    service: SchemaService = Depends(get_service),
) -> SchemaRead:
    request = JsonSchemaImportRequest(name=name, content=read_upload(file))
    return service.to_read(service.import_json_schema(request))
