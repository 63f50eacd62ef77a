import argparse
import os
from datetime import datetime, timezone

from school_portal.core.database import db, ensure_indexes
from school_portal.core.permissions import seed_rbac
from school_portal.core.security import get_password_hash
from school_portal.repositories.settings_repository import SettingsRepository
from school_portal.services.bulk_upload import process_personnel_upload


def main():
    parser = argparse.ArgumentParser(description="Seed roles, an admin account and optional personnel.")
    parser.add_argument("--admin-email", default=os.getenv("SCHOOL_PORTAL_ADMIN_EMAIL", "admin@school.edu"))
    parser.add_argument("--admin-password", default=os.getenv("SCHOOL_PORTAL_ADMIN_PASSWORD"))
    parser.add_argument("--personnel", help="Optional .xlsx/.csv personnel sheet to import")
    args = parser.parse_args()

    print("Creating indexes, default roles and settings...")
    ensure_indexes(db)
    seed_rbac(db)
    SettingsRepository(db).seed()

    if args.admin_password:
        email = args.admin_email.lower()
        if db["users"].find_one({"email": email}):
            print(f"Admin {email} already exists.")
        else:
            now = datetime.now(timezone.utc)
            db["users"].insert_one({
                "email": email,
                "hashed_password": get_password_hash(args.admin_password),
                "firstName": "System",
                "lastName": "Administrator",
                "roles": ["admin"],
                "isActive": True,
                "createdAt": now,
                "updatedAt": now,
            })
            print(f"Admin {email} created.")
    else:
        print("No admin password given; skipping admin account.")

    if args.personnel:
        if not os.path.exists(args.personnel):
            print(f"Error: {args.personnel} not found.")
            return
        print(f"Importing personnel from {args.personnel}...")
        with open(args.personnel, "rb") as f:
            result = process_personnel_upload(db, f.read(), os.path.basename(args.personnel))
        print(f"Result: created={result['created']} skipped={result['skipped']} failed={result['failed']}")


if __name__ == "__main__":
    main()
