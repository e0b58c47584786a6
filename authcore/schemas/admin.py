"""Transfer shapes for administrative entities (tenants, roles, applications)."""

import uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class TenantOut(BaseModel):
    id: uuid.UUID
    code: str
    name: str
    description: str | None = None
    org_count: int
    active: bool
    created_at: datetime


class RolePrivilegeOut(BaseModel):
    role_id: uuid.UUID
    resource_id: uuid.UUID
    create: bool
    read: bool
    update: bool
    delete: bool
    export: bool
    import_: bool = Field(alias="import")
    print_: bool = Field(alias="print")

    model_config = ConfigDict(populate_by_name=True)


class RoleOut(BaseModel):
    id: uuid.UUID
    tenant_id: uuid.UUID
    code: str
    name: str
    description: str | None = None
    active: bool
    privileges: list[RolePrivilegeOut] = Field(default_factory=list)


class AppResourceOut(BaseModel):
    id: uuid.UUID
    application_id: uuid.UUID
    code: str
    name: str
    description: str | None = None
    resource_type: int
    active: bool
    creatable: bool
    readable: bool
    updateable: bool
    deleteable: bool
    exportable: bool
    importable: bool
    printable: bool


class ApplicationOut(BaseModel):
    id: uuid.UUID
    code: str
    name: str
    description: str | None = None
    edition: str | None = None
    version: str | None = None
    active: bool
    resources: list[AppResourceOut] = Field(default_factory=list)
