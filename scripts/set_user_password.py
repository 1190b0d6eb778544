"""Create or update an account and its password for local development.

This is also the only way to create an ``admin`` account: public
registration is limited to ``user`` and ``business_owner``.
"""
from __future__ import annotations

import argparse
import sys
from pathlib import Path

# Ensure the project root is on sys.path so ``business_connect`` can be imported when the script is executed directly.
PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from business_connect import create_app
from business_connect.auth import hash_password
from business_connect.extensions import db
from business_connect.models import USER_ROLES, User

DEFAULT_NAMES = {
    "user": "Demo User",
    "business_owner": "Business Owner",
    "admin": "Admin User",
}


def set_password(email: str, password: str, role: str = "business_owner") -> None:
    app = create_app()
    email = email.strip().lower()

    with app.app_context():
        user = User.query.filter_by(email=email).first()
        if user is None:
            user = User(
                name=DEFAULT_NAMES[role],
                email=email,
                role=role,
                password_hash=hash_password(password),
            )
            db.session.add(user)
            print(f"Created new {role} user: {email}")
        else:
            if user.role != role:
                print(f"Updating user role from '{user.role}' to '{role}'")
                user.role = role
            user.password_hash = hash_password(password)

        db.session.commit()

        print(f"Password for {role} user '{email}' has been set successfully.")


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Set a user password for local testing.")
    parser.add_argument("email", help="User email address")
    parser.add_argument("password", help="Plain-text password to hash and store")
    parser.add_argument(
        "--role",
        choices=USER_ROLES,
        default="business_owner",
        help="User role (default: business_owner)"
    )
    return parser.parse_args()


def main() -> None:
    args = parse_args()
    set_password(args.email, args.password, args.role)


if __name__ == "__main__":
    main()
