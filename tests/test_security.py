import pytest
from itsdangerous import URLSafeTimedSerializer
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from config import get_settings
from database import Base
from errors import AuthError, ConflictError, ValidationError
from schemas import UserRegisterIn
from security import (
    NOT_AUTHORIZED,
    hash_password,
    issue_token,
    verify_password,
    verify_token,
)
from services import AuthService


def make_session():
    engine = create_engine(
        "sqlite+pysqlite:///:memory:", connect_args={"check_same_thread": False}
    )
    Base.metadata.create_all(engine)
    SessionLocal = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)
    return SessionLocal()


def test_password_hash_round_trip() -> None:
    hashed = hash_password("hunter22")
    assert hashed != "hunter22"
    assert verify_password("hunter22", hashed)
    assert not verify_password("hunter23", hashed)
    assert not verify_password("hunter22", "not-a-bcrypt-hash")


def test_token_round_trip() -> None:
    assert verify_token(issue_token(42)) == 42


def test_tampered_expired_and_foreign_tokens_fail_the_same_way() -> None:
    token = issue_token(42)
    foreign = URLSafeTimedSerializer("another-secret", salt="auth-token").dumps({"u": 42})
    wrong_payload = URLSafeTimedSerializer(
        get_settings().secret_key, salt="auth-token"
    ).dumps("42")

    for bad, max_age in (
        (token[:-2] + "xx", None),
        (token, -1),
        (foreign, None),
        (wrong_payload, None),
        ("", None),
    ):
        with pytest.raises(AuthError) as info:
            verify_token(bad, max_age_secs=max_age)
        assert info.value.message == NOT_AUTHORIZED


def test_register_and_authenticate() -> None:
    session = make_session()
    auth = AuthService(session)
    user = auth.register(
        UserRegisterIn(username=" alice ", email="Alice@Example.com", password="s3cret!")
    )
    assert user.username == "alice"
    assert user.email == "alice@example.com"
    assert user.password_hash != "s3cret!"

    assert auth.authenticate("ALICE@example.com", "s3cret!").id == user.id


def test_register_rejects_duplicates() -> None:
    session = make_session()
    auth = AuthService(session)
    auth.register(UserRegisterIn(username="alice", email="a@example.com", password="s3cret!"))

    with pytest.raises(ConflictError, match="email"):
        auth.register(
            UserRegisterIn(username="other", email="a@example.com", password="s3cret!")
        )
    with pytest.raises(ConflictError, match="username"):
        auth.register(
            UserRegisterIn(username="alice", email="b@example.com", password="s3cret!")
        )


def test_bad_credentials_are_indistinguishable() -> None:
    session = make_session()
    auth = AuthService(session)
    auth.register(UserRegisterIn(username="alice", email="a@example.com", password="s3cret!"))

    with pytest.raises(AuthError) as wrong_password:
        auth.authenticate("a@example.com", "nope-nope")
    with pytest.raises(AuthError) as unknown_email:
        auth.authenticate("z@example.com", "s3cret!")
    assert wrong_password.value.message == unknown_email.value.message == "Invalid credentials"


def test_missing_credentials_are_a_validation_error() -> None:
    session = make_session()
    with pytest.raises(ValidationError) as info:
        AuthService(session).authenticate("", None)
    assert info.value.message == "Please provide an email and password"
    assert [e["field"] for e in info.value.errors] == ["email", "password"]
