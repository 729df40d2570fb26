"""Print a long-lived access token for an existing user.

Usage:
    python create_token.py admin --days 365
"""
import argparse

from backoffice_api.app.core.security import create_access_token


def main() -> None:
    parser = argparse.ArgumentParser(description="Issue a bearer token for a back-office user.")
    parser.add_argument("username", help="Username stored in the token subject")
    parser.add_argument("--days", type=int, default=365, help="Token lifetime in days")
    args = parser.parse_args()
    print(create_access_token({"sub": args.username}, expires_delta=args.days * 24 * 60 * 60))


if __name__ == "__main__":
    main()
