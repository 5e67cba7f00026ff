# src/dmail_service/init_db.py
"""Create the database schema and the system user."""

from dmail_service.db.session import SessionLocal, create_tables
from dmail_service.services.users import get_system_user


def main() -> None:
    create_tables()
    with SessionLocal() as db:
        system = get_system_user(db)
        print(f"System user ready: {system.name} (id={system.id})")


if __name__ == "__main__":
    main()
