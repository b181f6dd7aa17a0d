"""
python -m scripts.create_super_admin <email> <name>

The password is read from the terminal.
"""

import sys
from getpass import getpass

sys.path.insert(0, ".")

from dotenv import load_dotenv
load_dotenv()

from app.database import SessionLocal
from app.crud.user import user as user_crud


def create_super_admin(email: str, name: str, password: str):
    """Create an operator account that spans all tenants."""
    db = SessionLocal()

    try:
        if user_crud.get_by_email(db, email):
            print(f"User {email} already exists")
            return

        user = user_crud.create(
            db=db,
            name=name,
            email=email,
            password=password,
            tenant_id=None,
            role_id=None,
            is_super_admin=True,
        )
        print(f"Super-admin created: id={user.id}, email={user.email}")

    except Exception as e:
        db.rollback()
        print(f"Error: {e}")
        raise
    finally:
        db.close()


if __name__ == "__main__":
    if len(sys.argv) < 3:
        print(__doc__)
        sys.exit(1)
    password = getpass("Password: ")
    if len(password) < 8:
        print("Password must have at least 8 characters")
        sys.exit(1)
    create_super_admin(sys.argv[1], sys.argv[2], password)
