#!/usr/bin/env python3
"""
Generate the two signing secrets for HealPath tokens.
Run this and copy the output to your .env file.
"""

import secrets

if __name__ == "__main__":
    print("=" * 60)
    print("HealPath JWT Secret Generator")
    print("=" * 60)
    print("\nGenerating secure random keys...\n")

    # Access and refresh tokens must never share a secret.
    access_secret = secrets.token_hex(32)
    refresh_secret = secrets.token_hex(32)

    print(f"JWT_SECRET={access_secret}")
    print(f"JWT_REFRESH_SECRET={refresh_secret}")
    print("\n" + "=" * 60)
    print("Copy the lines above to your .env file")
    print("=" * 60)
