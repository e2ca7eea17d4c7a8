#!/usr/bin/env python3
"""
Create Staff User Script

Provision a staff user directly in MongoDB (first super_admin, store managers, ...).
Usage:
    python scripts/create_user.py admin@example.com 'S3cret-pass' super_admin --name "Admin"
    python scripts/create_user.py sm@example.com 'S3cret-pass' store_manager --holding <holdingId> --store <tiendaId>
"""
import argparse
import sys
sys.path.insert(0, '.')

from talent_portal.core.auth import hash_password, STAFF_ROLES
from talent_portal.core.exceptions import NotFoundException, ValidationException
from talent_portal.services.mongo_service import UserService, TiendaService, MarcaService


def build_assignments(args) -> dict:
    """Role assignments resolved from the tienda / marca documents."""
    fields = {}
    if args.store:
        tienda = TiendaService().get(args.store)
        store = {"tiendaId": tienda["id"], "tiendaNombre": tienda.get("nombre"), "marcaId": tienda.get("marcaId")}
        if args.role == "supervisor":
            fields["assignedStores"] = [store]
        else:
            fields["assignedStore"] = store
    if args.marca:
        marca = MarcaService().get(args.marca)
        fields["assignedMarca"] = {"marcaId": marca["id"], "marcaNombre": marca.get("nombre")}
    return fields


def main():
    parser = argparse.ArgumentParser(description="Create a staff user")
    parser.add_argument("email")
    parser.add_argument("password")
    parser.add_argument("role", choices=STAFF_ROLES)
    parser.add_argument("--name", help="Display name (defaults to the email user part)")
    parser.add_argument("--holding", help="Holding id")
    parser.add_argument("--store", help="Tienda id (store_manager, supervisor)")
    parser.add_argument("--marca", help="Marca id (jefe_marca)")
    args = parser.parse_args()

    if len(args.password) < 8:
        print("❌ Password must have at least 8 characters")
        return 1

    print("=" * 50)
    print("CREATE STAFF USER")
    print("=" * 50)

    try:
        fields = build_assignments(args)
    except NotFoundException as e:
        print(f"❌ {e}")
        return 1

    try:
        user_id = UserService().create(
            args.email,
            hash_password(args.password),
            args.role,
            displayName=args.name or args.email.split("@")[0],
            holdingId=args.holding,
            createdBy="script",
            **fields
        )
    except ValidationException as e:
        print(f"❌ {args.email}: {e}")
        return 1

    print(f"✅ Created {args.role} {args.email} (id {user_id})")
    return 0


if __name__ == "__main__":
    sys.exit(main())
