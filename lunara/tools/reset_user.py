from __future__ import annotations

import sys

from sqlalchemy import delete

from lunara.db import db_session
from lunara.models import User


def main() -> None:
    if len(sys.argv) < 2:
        print("Usage: python -m lunara.tools.reset_user <email>")
        raise SystemExit(2)

    email = sys.argv[1].strip().lower()
    if not email:
        print("Invalid email.")
        raise SystemExit(2)

    with db_session() as s:
        s.execute(delete(User).where(User.email == email))

    print(f"OK: user '{email}' deleted (if it existed).")


if __name__ == "__main__":
    main()
