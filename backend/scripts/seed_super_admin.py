"""
Bootstrap the first super admin.

The users page is only reachable by a super admin, so the very first one has
to be created out of band. Run this once after the initial migration, with
the email the person signs in with at the identity provider.

An existing row for the email is promoted to super_admin and reactivated.

Usage:
    python -m scripts.seed_super_admin EMAIL [NAME]
"""
import asyncio
import os
import sys

# Add parent directory to path to import admin_gate modules
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from admin_gate.auth.permissions import ROLE_LABELS, Role
from admin_gate.crud.admin_user import AdminUserRepository
from admin_gate.database import dispose_engine, get_sessionmaker


async def seed_super_admin(email: str, name: str | None = None) -> None:
    async with get_sessionmaker()() as session:
        repository = AdminUserRepository(session)
        try:
            existing = await repository.get_by_email(email)
            if existing is None:
                created = await repository.create(
                    email=email, role=Role.SUPER_ADMIN.value, name=name
                )
                print(f"  ✓ Created {ROLE_LABELS[Role.SUPER_ADMIN]}: {created.email}")
            else:
                existing.role = Role.SUPER_ADMIN.value
                existing.is_active = True
                if name:
                    existing.name = name
                await repository.update(existing)
                print(f"  ✓ Promoted existing account: {existing.email}")
            await repository.commit()
        except Exception:
            await repository.rollback()
            raise
    await dispose_engine()


def main(argv: list[str]) -> int:
    if not argv or len(argv) > 2:
        print(__doc__)
        return 2
    email = argv[0].strip()
    if "@" not in email:
        print(f"  ERROR: '{email}' is not an email address")
        return 2
    name = argv[1].strip() if len(argv) == 2 else None
    asyncio.run(seed_super_admin(email, name))
    return 0


if __name__ == "__main__":
    sys.exit(main(sys.argv[1:]))
