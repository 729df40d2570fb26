#!/usr/bin/env python3
"""
Set a user's password in the back-office SQLite database.

The script never reads or reveals existing passwords; it stores a new
PBKDF2 hash for the given username.  With ``--create-admin`` a missing
user is created with the administrator role, which is how the first
account of a fresh installation is made.

Usage:
    python reset_password.py --username admin --password "NewStrongPass!234" --create-admin

If --password is omitted, you will be prompted to enter it securely.
"""

import argparse
import getpass
import sys

from backoffice_api.app.core.db import get_connection, init_db, transaction
from backoffice_api.app.core.security import hash_password


def main():
    ap = argparse.ArgumentParser(description="Reset a back-office user's password.")
    ap.add_argument("--username", required=True, help="Username to update")
    ap.add_argument("--password", help="New password. If omitted, you'll be prompted securely.")
    ap.add_argument("--create-admin", action="store_true", help="Create the user as administrator if missing")
    args = ap.parse_args()

    new_password = args.password or getpass.getpass("Enter NEW password: ")
    if not new_password:
        print("[!] Empty password is not allowed.", file=sys.stderr)
        sys.exit(1)

    init_db()
    conn = get_connection()
    try:
        with transaction(conn) as cur:
            row = cur.execute("SELECT id FROM users WHERE username = ?", (args.username,)).fetchone()
            if row:
                cur.execute(
                    "UPDATE users SET password = ?, updated_at = CURRENT_TIMESTAMP WHERE id = ?",
                    (hash_password(new_password), row["id"]),
                )
            elif args.create_admin:
                cur.execute(
                    "INSERT INTO users (username, password, role_id, is_staff) VALUES (?, ?, 1, 1)",
                    (args.username, hash_password(new_password)),
                )
            else:
                print(f"[!] No user found with username: {args.username}", file=sys.stderr)
                sys.exit(2)
        print(f"[+] Password updated for user: {args.username}")
    finally:
        conn.close()


if __name__ == "__main__":
    main()
