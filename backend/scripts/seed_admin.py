"""
Create (or re-confirm) the first approved admin.

    python scripts/seed_admin.py admin@example.org

Needs SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY. Safe to run more than once.
"""

import argparse
import logging
import os
import sys

from dotenv import load_dotenv

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))
load_dotenv()

from app.core.errors import UpstreamFailure, ValidationError  # noqa: E402
from app.lib.api_client import supabase_admin  # noqa: E402
from app.services.user_service import UserService  # noqa: E402


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Bootstrap the first approved admin profile.")
    parser.add_argument("email", help="email of the account to promote (invited if it does not exist)")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO)

    if not os.environ.get("SUPABASE_URL") or not (
        os.environ.get("SUPABASE_SERVICE_ROLE_KEY") or os.environ.get("SUPABASE_KEY")
    ):
        print("Error: SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY must be set.", file=sys.stderr)
        return 1

    try:
        profile = UserService(supabase_admin=supabase_admin).seed_admin(args.email)
    except (ValidationError, UpstreamFailure) as e:
        print(f"Error: {e.detail}", file=sys.stderr)
        return 1

    print(f"Admin ready: {profile.get('email')} ({profile.get('id')})")
    return 0


if __name__ == "__main__":
    sys.exit(main())
