"""Administrative writes for tenants, users, roles, applications and role privileges.

Referential rules are checked here explicitly rather than left to the ORM:

- restrict: a tenant cannot be deleted while users or roles reference it;
- cascade: deleting a user removes its refresh tokens and role assignments,
  deleting a role or application removes its privileges (and resources).

RolePrivilege grant bits must be a subset of the target resource's capability
flags; violations are rejected with field-level ValidationFailed.
"""

import logging
import uuid

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from authcore.core.database import db_errors
from authcore.core.errors import ConflictError, NotFoundError, ValidationFailed
from authcore.core.security import (
    EMAIL_MAX_LEN,
    PASSWORD_MAX_LEN,
    PASSWORD_MIN_LEN,
    USERNAME_MAX_LEN,
    USERNAME_MIN_LEN,
    hash_password,
)
from authcore.models import (
    PRIVILEGE_ACTIONS,
    AppResource,
    Application,
    Role,
    RolePrivilege,
    Tenant,
    User,
    UserRole,
)
from authcore.models.base import utcnow
from authcore.services.privileges import PrivilegeCache

logger = logging.getLogger(__name__)

CODE_MAX_LEN = 16
TENANT_NAME_MAX_LEN = 50
ROLE_NAME_MAX_LEN = 25
APPLICATION_NAME_MAX_LEN = 50
RESOURCE_NAME_MAX_LEN = 50

# AppResource capability flag for each grant bit.
CAPABILITY_FLAGS = {
    "create": "creatable",
    "read": "readable",
    "update": "updateable",
    "delete": "deleteable",
    "export": "exportable",
    "import": "importable",
    "print": "printable",
}


def _squash(value: str | None) -> str:
    """Trim and collapse runs of whitespace."""
    return " ".join((value or "").split())


def _require(errors: dict[str, str], field: str, value: str, max_len: int) -> None:
    if not value:
        errors[field] = f"{field} is required."
    elif len(value) > max_len:
        errors[field] = f"{field} must be at most {max_len} characters."


def _code_and_name(
    errors: dict[str, str],
    code: str,
    name: str,
    name_max_len: int,
) -> tuple[str, str]:
    """Normalize a code (upper-cased) and a display name, recording field errors."""
    code = _squash(code).upper()
    name = _squash(name)
    _require(errors, "code", code, CODE_MAX_LEN)
    _require(errors, "name", name, name_max_len)
    return code, name


def _capability_errors(capabilities: dict[str, bool]) -> dict[str, str]:
    return {
        action: f"Unknown privilege action '{action}'."
        for action in capabilities
        if action not in CAPABILITY_FLAGS
    }


class AdminService:
    """CRUD paths the auth core reads from; NotFound and Conflict surface distinctly here."""

    def __init__(
        self,
        session: Session,
        cache: PrivilegeCache | None = None,
        bcrypt_rounds: int | None = None,
    ) -> None:
        self.session = session
        self.cache = cache
        self.bcrypt_rounds = bcrypt_rounds

    # -- helpers ---------------------------------------------------------

    def _get(self, model, key: uuid.UUID, entity: str):
        with db_errors(self.session, f"admin.get_{entity.lower()}"):
            row = self.session.get(model, key)
        if row is None:
            raise NotFoundError(entity, key)
        return row

    def _ensure_unique(
        self,
        model,
        field: str,
        value: str,
        exclude_id: uuid.UUID | None = None,
        **scope,
    ) -> None:
        """Raise ConflictError if another row (not exclude_id) holds value, ignoring case."""
        column = getattr(model, field)
        query = self.session.query(model.id).filter(func.lower(column) == value.lower())
        if exclude_id is not None:
            query = query.filter(model.id != exclude_id)
        for name, scoped_value in scope.items():
            query = query.filter(getattr(model, name) == scoped_value)
        with db_errors(self.session, "admin.ensure_unique"):
            exists = query.first() is not None
        if exists:
            raise ConflictError(field, f"{field.capitalize()} '{value}' already exists")

    def _commit(self, operation: str) -> None:
        with db_errors(self.session, operation):
            try:
                self.session.commit()
            except IntegrityError as e:
                self.session.rollback()
                raise ConflictError("unique", "A record with the same key already exists") from e

    def _invalidate(self, tenant_id: uuid.UUID, user_id: uuid.UUID | None = None) -> None:
        if self.cache is not None:
            self.cache.invalidate(tenant_id, user_id)

    # -- tenants ---------------------------------------------------------

    def create_tenant(
        self,
        code: str,
        name: str,
        description: str | None = None,
        org_count: int = 0,
    ) -> Tenant:
        code, name = self._validate_tenant(code, name, org_count)
        self._ensure_unique(Tenant, "code", code)
        self._ensure_unique(Tenant, "name", name)

        tenant = Tenant(code=code, name=name, description=description, org_count=org_count, active=True)
        self.session.add(tenant)
        self._commit("admin.create_tenant")
        logger.info("Tenant created id=%s code=%s", tenant.id, tenant.code)
        return tenant

    def _validate_tenant(self, code: str, name: str, org_count: int) -> tuple[str, str]:
        errors: dict[str, str] = {}
        code, name = _code_and_name(errors, code, name, TENANT_NAME_MAX_LEN)
        if org_count < 0:
            errors["org_count"] = "org_count must not be negative."
        if errors:
            raise ValidationFailed(errors)
        return code, name

    def update_tenant(
        self,
        tenant_id: uuid.UUID,
        code: str,
        name: str,
        description: str | None = None,
        org_count: int = 0,
    ) -> Tenant:
        """Replace a tenant's code, name, description and org count."""
        code, name = self._validate_tenant(code, name, org_count)
        tenant = self._get(Tenant, tenant_id, "Tenant")
        self._ensure_unique(Tenant, "code", code, exclude_id=tenant_id)
        self._ensure_unique(Tenant, "name", name, exclude_id=tenant_id)

        tenant.code = code
        tenant.name = name
        tenant.description = description
        tenant.org_count = org_count
        tenant.modified_at = utcnow()
        self._commit("admin.update_tenant")
        return tenant

    def set_tenant_active(self, tenant_id: uuid.UUID, active: bool) -> Tenant:
        tenant = self._get(Tenant, tenant_id, "Tenant")
        tenant.active = active
        tenant.modified_at = utcnow()
        self._commit("admin.set_tenant_active")
        return tenant

    def delete_tenant(self, tenant_id: uuid.UUID) -> None:
        """Delete a tenant that no user or role references."""
        tenant = self._get(Tenant, tenant_id, "Tenant")
        with db_errors(self.session, "admin.delete_tenant"):
            has_users = (
                self.session.query(User.id).filter(User.tenant_id == tenant_id).first() is not None
            )
            has_roles = (
                self.session.query(Role.id).filter(Role.tenant_id == tenant_id).first() is not None
            )
        if has_users or has_roles:
            raise ConflictError("tenant", "Tenant still has users or roles and cannot be deleted")
        self.session.delete(tenant)
        self._commit("admin.delete_tenant")
        self._invalidate(tenant_id)

    # -- users -----------------------------------------------------------

    def create_user(
        self,
        tenant_id: uuid.UUID,
        username: str,
        email: str,
        password: str,
        first_name: str | None = None,
        last_name: str | None = None,
    ) -> User:
        username = (username or "").strip()
        email = (email or "").strip().lower()
        errors: dict[str, str] = {}
        if not (USERNAME_MIN_LEN <= len(username) <= USERNAME_MAX_LEN):
            errors["username"] = f"username must be {USERNAME_MIN_LEN}-{USERNAME_MAX_LEN} characters."
        elif "@" in username:
            errors["username"] = "username must not contain '@'."
        if not email or "@" not in email or len(email) > EMAIL_MAX_LEN:
            errors["email"] = "A valid email address is required."
        if not (PASSWORD_MIN_LEN <= len(password or "") <= PASSWORD_MAX_LEN):
            errors["password"] = f"password must be {PASSWORD_MIN_LEN}-{PASSWORD_MAX_LEN} characters."
        if errors:
            raise ValidationFailed(errors)

        self._get(Tenant, tenant_id, "Tenant")
        self._ensure_unique(User, "username", username)
        self._ensure_unique(User, "email", email)

        if self.bcrypt_rounds is None:
            password_hash, password_salt = hash_password(password)
        else:
            password_hash, password_salt = hash_password(password, rounds=self.bcrypt_rounds)
        user = User(
            tenant_id=tenant_id,
            username=username,
            email=email,
            first_name=_squash(first_name) or None,
            last_name=_squash(last_name) or None,
            password_hash=password_hash,
            password_salt=password_salt,
            active=True,
        )
        self.session.add(user)
        self._commit("admin.create_user")
        logger.info("User created id=%s tenant=%s", user.id, tenant_id)
        return user

    def set_user_active(self, user_id: uuid.UUID, active: bool) -> User:
        user = self._get(User, user_id, "User")
        user.active = active
        user.modified_at = utcnow()
        self._commit("admin.set_user_active")
        self._invalidate(user.tenant_id, user.id)
        return user

    def delete_user(self, user_id: uuid.UUID) -> None:
        """Delete a user together with its refresh tokens and role assignments."""
        user = self._get(User, user_id, "User")
        tenant_id = user.tenant_id
        self.session.delete(user)
        self._commit("admin.delete_user")
        self._invalidate(tenant_id, user_id)

    # -- roles -----------------------------------------------------------

    def create_role(
        self,
        tenant_id: uuid.UUID,
        code: str,
        name: str,
        description: str | None = None,
    ) -> Role:
        errors: dict[str, str] = {}
        code, name = _code_and_name(errors, code, name, ROLE_NAME_MAX_LEN)
        if errors:
            raise ValidationFailed(errors)
        self._get(Tenant, tenant_id, "Tenant")
        self._ensure_unique(Role, "code", code, tenant_id=tenant_id)
        self._ensure_unique(Role, "name", name, tenant_id=tenant_id)

        role = Role(tenant_id=tenant_id, code=code, name=name, description=description, active=True)
        self.session.add(role)
        self._commit("admin.create_role")
        return role

    def update_role(
        self,
        role_id: uuid.UUID,
        code: str,
        name: str,
        description: str | None = None,
    ) -> Role:
        """Rename a role; code and name stay unique inside its tenant. The tenant never changes."""
        errors: dict[str, str] = {}
        code, name = _code_and_name(errors, code, name, ROLE_NAME_MAX_LEN)
        if errors:
            raise ValidationFailed(errors)
        role = self._get(Role, role_id, "Role")
        self._ensure_unique(Role, "code", code, exclude_id=role_id, tenant_id=role.tenant_id)
        self._ensure_unique(Role, "name", name, exclude_id=role_id, tenant_id=role.tenant_id)

        role.code = code
        role.name = name
        role.description = description
        role.modified_at = utcnow()
        self._commit("admin.update_role")
        return role

    def set_role_active(self, role_id: uuid.UUID, active: bool) -> Role:
        role = self._get(Role, role_id, "Role")
        role.active = active
        role.modified_at = utcnow()
        self._commit("admin.set_role_active")
        self._invalidate(role.tenant_id)
        return role

    def delete_role(self, role_id: uuid.UUID) -> None:
        role = self._get(Role, role_id, "Role")
        tenant_id = role.tenant_id
        self.session.delete(role)
        self._commit("admin.delete_role")
        self._invalidate(tenant_id)

    def assign_role(self, user_id: uuid.UUID, role_id: uuid.UUID) -> UserRole:
        """Assign a role to a user of the same tenant; assigning twice is a no-op."""
        user = self._get(User, user_id, "User")
        role = self._get(Role, role_id, "Role")
        if user.tenant_id != role.tenant_id:
            raise ValidationFailed({"role_id": "Role belongs to a different tenant."})
        existing = self.session.get(UserRole, (user_id, role_id))
        if existing is not None:
            return existing
        assignment = UserRole(user_id=user_id, role_id=role_id)
        self.session.add(assignment)
        self._commit("admin.assign_role")
        self._invalidate(user.tenant_id, user_id)
        return assignment

    def unassign_role(self, user_id: uuid.UUID, role_id: uuid.UUID) -> None:
        assignment = self._get(UserRole, (user_id, role_id), "Role assignment")
        tenant_id = assignment.role.tenant_id
        self.session.delete(assignment)
        self._commit("admin.unassign_role")
        self._invalidate(tenant_id, user_id)

    # -- applications and resources -------------------------------------

    def create_application(
        self,
        code: str,
        name: str,
        description: str | None = None,
        edition: str | None = None,
        version: str | None = None,
    ) -> Application:
        errors: dict[str, str] = {}
        code, name = _code_and_name(errors, code, name, APPLICATION_NAME_MAX_LEN)
        if errors:
            raise ValidationFailed(errors)
        self._ensure_unique(Application, "code", code)
        self._ensure_unique(Application, "name", name)

        application = Application(
            code=code,
            name=name,
            description=description,
            edition=edition,
            version=version,
            active=True,
        )
        self.session.add(application)
        self._commit("admin.create_application")
        return application

    def update_application(
        self,
        application_id: uuid.UUID,
        code: str,
        name: str,
        description: str | None = None,
        edition: str | None = None,
        version: str | None = None,
    ) -> Application:
        errors: dict[str, str] = {}
        code, name = _code_and_name(errors, code, name, APPLICATION_NAME_MAX_LEN)
        if errors:
            raise ValidationFailed(errors)
        application = self._get(Application, application_id, "Application")
        self._ensure_unique(Application, "code", code, exclude_id=application_id)
        self._ensure_unique(Application, "name", name, exclude_id=application_id)

        application.code = code
        application.name = name
        application.description = description
        application.edition = edition
        application.version = version
        application.modified_at = utcnow()
        self._commit("admin.update_application")
        return application

    def set_application_active(self, application_id: uuid.UUID, active: bool) -> Application:
        application = self._get(Application, application_id, "Application")
        application.active = active
        application.modified_at = utcnow()
        self._commit("admin.set_application_active")
        if self.cache is not None:
            self.cache.clear()
        return application

    def delete_application(self, application_id: uuid.UUID) -> None:
        """Delete an application with its resources and every privilege granted on them."""
        application = self._get(Application, application_id, "Application")
        self.session.delete(application)
        self._commit("admin.delete_application")
        if self.cache is not None:
            self.cache.clear()

    def add_resource(
        self,
        application_id: uuid.UUID,
        code: str,
        name: str,
        capabilities: dict[str, bool],
        description: str | None = None,
        resource_type: int = 0,
    ) -> AppResource:
        """Add a protected resource; capabilities maps action name -> supported."""
        errors = _capability_errors(capabilities)
        code, name = _code_and_name(errors, code, name, RESOURCE_NAME_MAX_LEN)
        if errors:
            raise ValidationFailed(errors)
        self._get(Application, application_id, "Application")
        self._ensure_unique(AppResource, "code", code, application_id=application_id)
        self._ensure_unique(AppResource, "name", name, application_id=application_id)

        resource = AppResource(
            application_id=application_id,
            code=code,
            name=name,
            description=description,
            resource_type=resource_type,
            active=True,
            **{CAPABILITY_FLAGS[action]: bool(value) for action, value in capabilities.items()},
        )
        self.session.add(resource)
        self._commit("admin.add_resource")
        return resource

    def update_resource(
        self,
        resource_id: uuid.UUID,
        code: str,
        name: str,
        capabilities: dict[str, bool],
        description: str | None = None,
        resource_type: int = 0,
    ) -> AppResource:
        """
        Replace a resource's code, name and capability flags.

        Actions omitted from capabilities become unsupported. Withdrawing a
        capability that some role still holds a grant for is rejected with
        ValidationFailed naming the action; remove those grants first.
        """
        errors = _capability_errors(capabilities)
        code, name = _code_and_name(errors, code, name, RESOURCE_NAME_MAX_LEN)
        if errors:
            raise ValidationFailed(errors)
        resource = self._get(AppResource, resource_id, "Resource")
        application_id = resource.application_id
        self._ensure_unique(
            AppResource, "code", code, exclude_id=resource_id, application_id=application_id
        )
        self._ensure_unique(
            AppResource, "name", name, exclude_id=resource_id, application_id=application_id
        )

        supported = {action: bool(capabilities.get(action, False)) for action in PRIVILEGE_ACTIONS}
        with db_errors(self.session, "admin.update_resource"):
            grants = (
                self.session.query(RolePrivilege)
                .filter(RolePrivilege.resource_id == resource_id)
                .all()
            )
        for privilege in grants:
            for action, granted in privilege.grant_bits().items():
                if granted and not supported[action]:
                    errors[action] = f"Role privileges still grant '{action}' on '{resource.code}'."
        if errors:
            raise ValidationFailed(errors)

        resource.code = code
        resource.name = name
        resource.description = description
        resource.resource_type = resource_type
        for action, flag in CAPABILITY_FLAGS.items():
            setattr(resource, flag, supported[action])
        resource.modified_at = utcnow()
        self._commit("admin.update_resource")
        return resource

    # -- role privileges -------------------------------------------------

    def set_role_privilege(
        self,
        role_id: uuid.UUID,
        resource_id: uuid.UUID,
        grants: dict[str, bool],
    ) -> RolePrivilege:
        """
        Create or replace the grant bits a role holds on a resource.

        Bits not named in grants are cleared. Raises ValidationFailed when a
        bit is granted that the resource does not support.
        """
        role = self._get(Role, role_id, "Role")
        resource = self._get(AppResource, resource_id, "Resource")

        errors: dict[str, str] = {}
        capabilities = resource.capabilities()
        for action, granted in grants.items():
            if action not in CAPABILITY_FLAGS:
                errors[action] = f"Unknown privilege action '{action}'."
            elif granted and not capabilities[action]:
                errors[action] = f"Resource '{resource.code}' does not support '{action}'."
        if errors:
            raise ValidationFailed(errors)

        bits = {action: bool(grants.get(action, False)) for action in PRIVILEGE_ACTIONS}
        privilege = self.session.get(RolePrivilege, (role_id, resource_id))
        if privilege is None:
            privilege = RolePrivilege(role_id=role_id, resource_id=resource_id)
            self.session.add(privilege)
        privilege.create = bits["create"]
        privilege.read = bits["read"]
        privilege.update = bits["update"]
        privilege.delete = bits["delete"]
        privilege.export = bits["export"]
        privilege.import_ = bits["import"]
        privilege.print_ = bits["print"]
        self._commit("admin.set_role_privilege")
        self._invalidate(role.tenant_id)
        return privilege

    def remove_role_privilege(self, role_id: uuid.UUID, resource_id: uuid.UUID) -> None:
        privilege = self._get(RolePrivilege, (role_id, resource_id), "Role privilege")
        tenant_id = privilege.role.tenant_id
        self.session.delete(privilege)
        self._commit("admin.remove_role_privilege")
        self._invalidate(tenant_id)
