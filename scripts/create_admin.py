#!/usr/bin/env python3
"""
Create an admin account.
Admins cannot self-register through the API; they are created here, directly
against the configured database (DB_URI).
"""

import getpass
import secrets
import string
import sys

from healpath import identities
from healpath.config import MIN_PASSWORD_LENGTH
from healpath.database import init_engine
from healpath.errors import ValidationError
from healpath.security import hash_password


def generate_password(length=20):
    """Generate a secure random password."""
    chars = string.ascii_letters + string.digits
    return "".join(secrets.choice(chars) for _ in range(length))


def main():
    print("=" * 70)
    print("HealPath Admin Account Creator")
    print("=" * 70)
    print()

    name = input("Display name: ").strip()
    email = input("Email: ").strip().lower()
    if not name or not email:
        print("ERROR: name and email are required")
        sys.exit(1)

    password = getpass.getpass("Password (leave empty to generate one): ")
    generated = not password
    if generated:
        password = generate_password()
    elif len(password) < MIN_PASSWORD_LENGTH:
        print(f"ERROR: password must be at least {MIN_PASSWORD_LENGTH} characters")
        sys.exit(1)

    engine = init_engine()
    try:
        admin = identities.create_identity(
            engine,
            name=name,
            email=email,
            password_hash=hash_password(password),
            role="admin",
        )
    except ValidationError as e:
        print(f"ERROR: {e.message}")
        sys.exit(1)

    print()
    print(f"Created admin {admin.name} <{admin.email}> (id={admin.id})")
    if generated:
        print("-" * 70)
        print(f"  Generated password: {password}")
        print("  Store it now; it is not shown again.")
    print("=" * 70)


if __name__ == "__main__":
    main()
