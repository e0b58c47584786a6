"""Conversions between ORM entities and transfer schemas.

MAPPING_RULES lists, per conversion, which entity attributes are never copied
(secrets, back-references) and which target fields are computed rather than
copied. The functions below follow that table; tests check it against the
schema definitions so a new secret column cannot leak by accident.
"""

import uuid
from dataclasses import dataclass

from authcore.models import (
    AppResource,
    Application,
    RefreshToken,
    Role,
    RolePrivilege,
    Tenant,
    User,
)
from authcore.models.base import as_utc
from authcore.schemas.admin import (
    AppResourceOut,
    ApplicationOut,
    RoleOut,
    RolePrivilegeOut,
    TenantOut,
)
from authcore.schemas.auth import ActiveSession, UserSummary
from authcore.schemas.privileges import EffectivePrivilegesResponse, ResourcePermissions
from authcore.services.privileges import PermissionSet


@dataclass(frozen=True)
class MappingRule:
    source: type
    target: type
    ignored: tuple[str, ...] = ()
    computed: tuple[str, ...] = ()


MAPPING_RULES: tuple[MappingRule, ...] = (
    MappingRule(
        User,
        UserSummary,
        ignored=("password_hash", "password_salt", "refresh_tokens", "role_assignments", "active"),
        computed=("full_name",),
    ),
    MappingRule(
        RefreshToken,
        ActiveSession,
        ignored=("token", "replaced_by_token", "revoked_at", "revoked_by_ip", "user_id"),
    ),
    MappingRule(Tenant, TenantOut, ignored=("users", "roles", "modified_at")),
    MappingRule(Role, RoleOut, ignored=("assignments", "created_at", "modified_at")),
    MappingRule(RolePrivilege, RolePrivilegeOut, ignored=("role", "resource")),
    MappingRule(Application, ApplicationOut, ignored=("created_at", "modified_at")),
    MappingRule(
        AppResource,
        AppResourceOut,
        ignored=("application", "privileges", "created_at", "modified_at"),
    ),
)


def user_to_summary(user: User) -> UserSummary:
    full_name = " ".join(part for part in (user.first_name, user.last_name) if part) or user.username
    return UserSummary(
        id=user.id,
        tenant_id=user.tenant_id,
        username=user.username,
        email=user.email,
        first_name=user.first_name,
        last_name=user.last_name,
        full_name=full_name,
        last_login_at=as_utc(user.last_login_at),
    )


def refresh_token_to_session(token: RefreshToken) -> ActiveSession:
    return ActiveSession(
        id=token.id,
        created_at=as_utc(token.created_at),
        expires_at=as_utc(token.expires_at),
        created_by_ip=token.created_by_ip,
    )


def tenant_to_out(tenant: Tenant) -> TenantOut:
    return TenantOut(
        id=tenant.id,
        code=tenant.code,
        name=tenant.name,
        description=tenant.description,
        org_count=tenant.org_count,
        active=tenant.active,
        created_at=as_utc(tenant.created_at),
    )


def role_privilege_to_out(privilege: RolePrivilege) -> RolePrivilegeOut:
    return RolePrivilegeOut(
        role_id=privilege.role_id,
        resource_id=privilege.resource_id,
        create=privilege.create,
        read=privilege.read,
        update=privilege.update,
        delete=privilege.delete,
        export=privilege.export,
        import_=privilege.import_,
        print_=privilege.print_,
    )


def role_to_out(role: Role) -> RoleOut:
    return RoleOut(
        id=role.id,
        tenant_id=role.tenant_id,
        code=role.code,
        name=role.name,
        description=role.description,
        active=role.active,
        privileges=[role_privilege_to_out(p) for p in role.privileges],
    )


def resource_to_out(resource: AppResource) -> AppResourceOut:
    return AppResourceOut(
        id=resource.id,
        application_id=resource.application_id,
        code=resource.code,
        name=resource.name,
        description=resource.description,
        resource_type=resource.resource_type,
        active=resource.active,
        creatable=resource.creatable,
        readable=resource.readable,
        updateable=resource.updateable,
        deleteable=resource.deleteable,
        exportable=resource.exportable,
        importable=resource.importable,
        printable=resource.printable,
    )


def application_to_out(application: Application, include_resources: bool = False) -> ApplicationOut:
    return ApplicationOut(
        id=application.id,
        code=application.code,
        name=application.name,
        description=application.description,
        edition=application.edition,
        version=application.version,
        active=application.active,
        resources=[resource_to_out(r) for r in application.resources] if include_resources else [],
    )


def permissions_to_response(
    user_id: uuid.UUID,
    tenant_id: uuid.UUID,
    permissions: dict[uuid.UUID, PermissionSet],
) -> EffectivePrivilegesResponse:
    """Sorted by resource id so responses are stable; all-False entries are dropped."""
    resources = [
        ResourcePermissions(resource_id=resource_id, **perm.as_dict())
        for resource_id, perm in sorted(permissions.items(), key=lambda item: str(item[0]))
        if perm.any()
    ]
    return EffectivePrivilegesResponse(user_id=user_id, tenant_id=tenant_id, resources=resources)
