"""
Create a user (e.g. the first administrator). Run from project root:
  python -m authcore.scripts.create_user TENANT_CODE USERNAME EMAIL PASSWORD
Example:
  python -m authcore.scripts.create_user ACME admin admin@acme.test your-secure-password

The tenant is created when no tenant with that code exists yet
(pass --tenant-name to name it).
"""
import argparse
import logging
import sys

from authcore.core.database import SessionLocal
from authcore.core.errors import AuthCoreError, ConflictError, ValidationFailed
from authcore.models import Tenant
from authcore.services.admin import AdminService

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
)
logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Create an authcore user (no registration UI).")
    parser.add_argument("tenant_code", help="Tenant code (created if missing)")
    parser.add_argument("username", help="Username (1-25 chars, no '@')")
    parser.add_argument("email", help="Email address")
    parser.add_argument("password", help="Password (8-128 chars)")
    parser.add_argument("--tenant-name", default=None, help="Name for a newly created tenant")
    parser.add_argument("--first-name", default=None)
    parser.add_argument("--last-name", default=None)
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    db = SessionLocal()
    try:
        admin = AdminService(db)
        code = " ".join(args.tenant_code.split()).upper()
        tenant = db.query(Tenant).filter(Tenant.code == code).first()
        if tenant is None:
            tenant = admin.create_tenant(code, args.tenant_name or code)
            print(f"Created tenant '{tenant.code}'.")
        user = admin.create_user(
            tenant.id,
            args.username,
            args.email,
            args.password,
            first_name=args.first_name,
            last_name=args.last_name,
        )
        print(f"Created user '{user.username}' in tenant '{tenant.code}'.")
        return 0
    except ValidationFailed as e:
        for field, message in e.errors.items():
            print(f"{field}: {message}", file=sys.stderr)
        return 1
    except ConflictError as e:
        print(e.message, file=sys.stderr)
        return 1
    except AuthCoreError as e:
        logger.error("User creation failed: %s", e.message)
        return 1
    finally:
        db.close()


if __name__ == "__main__":
    sys.exit(main())
