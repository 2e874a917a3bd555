import bcrypt
from fastapi import APIRouter, Depends, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from database import User, get_db
from errors import Conflict, store_errors
from logger import logger
from schemas import UserCreate, UserOut

BCRYPT_ROUNDS = 12
UNIQUE_VIOLATION = "23505"  # PostgreSQL SQLSTATE

auth_router = APIRouter()


def hash_password(password: str) -> str:
    return bcrypt.hashpw(
        password.encode("utf-8"), bcrypt.gensalt(rounds=BCRYPT_ROUNDS)
    ).decode("utf-8")


def is_unique_violation(exc: IntegrityError) -> bool:
    orig = exc.orig
    if getattr(orig, "pgcode", None) == UNIQUE_VIOLATION:
        return True
    # sqlite: "UNIQUE constraint failed", postgres: "violates unique constraint"
    return "unique constraint" in str(orig).lower()


@auth_router.post("/signup", response_model=UserOut, status_code=status.HTTP_201_CREATED)
def signup(user: UserCreate, db: Session = Depends(get_db)):
    """
    Register a new account.

    There is no lookup for an existing username/email before the insert: the
    unique constraints on the users table decide, so two concurrent signups
    for the same name end with exactly one row and one Conflict.
    """
    new_user = User(
        username=user.username,
        email=user.email,
        password_hash=hash_password(user.password),
    )

    with store_errors():
        try:
            db.add(new_user)
            db.commit()
        except IntegrityError as e:
            if is_unique_violation(e):
                logger.info(f"Signup rejected, duplicate account: {new_user.username}")
                raise Conflict() from e
            raise

    logger.info(f"Registered user {new_user.id} ({new_user.username})")
    return new_user
