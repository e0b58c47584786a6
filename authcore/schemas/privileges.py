"""Schemas for effective privilege responses."""

import uuid

from pydantic import BaseModel, ConfigDict, Field


class ResourcePermissions(BaseModel):
    """Effective grant bits on one resource (OR across the caller's roles)."""

    resource_id: uuid.UUID
    create: bool = False
    read: bool = False
    update: bool = False
    delete: bool = False
    export: bool = False
    import_: bool = Field(default=False, alias="import")
    print_: bool = Field(default=False, alias="print")

    model_config = ConfigDict(populate_by_name=True)


class EffectivePrivilegesResponse(BaseModel):
    """Response for GET /auth/privileges; resources without any grant are omitted."""

    user_id: uuid.UUID
    tenant_id: uuid.UUID
    resources: list[ResourcePermissions]
