"""Create a HiLearn account from the command line.

Mostly used to provision the first admin / support agent on a fresh database.

Usage:
    python -m hilearn.create_user --name "Help Desk" --email help@corp.example \
        --password 's3cret-pass' --role ADMIN --support-agent
"""
import argparse
import sys

from sqlalchemy.exc import SQLAlchemyError

from hilearn.auth.passwords import hash_password
from hilearn.database import Base, SessionLocal, engine, ensure_chat_schema
from hilearn.models import chat_message, notification  # noqa: F401
from hilearn.models.user import STAFF_ROLES, Role, User


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Create a HiLearn user account.")
    parser.add_argument("--name", required=True)
    parser.add_argument("--email", required=True)
    parser.add_argument("--password", required=True)
    parser.add_argument("--role", choices=[role.value for role in Role], default=Role.STUDENT.value)
    parser.add_argument("--support-agent", action="store_true", help="Route learner support chats to this user.")
    return parser


def create_user(name: str, email: str, password: str, role: str, support_agent: bool, db) -> User:
    if support_agent and role not in STAFF_ROLES:
        raise ValueError("Only ADMIN or INSTRUCTOR accounts can be support agents.")

    email = email.strip().lower()
    if db.query(User).filter(User.email == email).first():
        raise ValueError(f"A user with email {email} already exists.")

    user = User(
        name=name.strip(),
        email=email,
        hashed_password=hash_password(password),
        role=role,
        is_support_agent=support_agent,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def main(argv: list[str] | None = None) -> None:
    args = build_parser().parse_args(argv)

    Base.metadata.create_all(bind=engine)
    ensure_chat_schema()

    db = SessionLocal()
    try:
        user = create_user(args.name, args.email, args.password, args.role, args.support_agent, db)
    except ValueError as exc:
        print(exc, file=sys.stderr)
        sys.exit(1)
    except SQLAlchemyError as exc:
        db.rollback()
        print(f"Database error: {exc}", file=sys.stderr)
        sys.exit(1)
    finally:
        db.close()

    print(f"Created {user.role} user {user.email} (id={user.id})")


if __name__ == "__main__":
    main()
