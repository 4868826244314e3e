"""Tests for the credential store."""

import pytest
from sqlalchemy import select

from notesbuzz.exceptions import Conflict, InvalidInput
from notesbuzz.models.user import User
from notesbuzz.services.credential_store import CredentialStore, validate_signup


@pytest.fixture
def store(session_factory):
    """Credential store on the test database."""
    return CredentialStore(session_factory)


@pytest.mark.anyio
async def test_create_stores_hash_not_plaintext(store, session_factory):
    """Test that the password is stored only as a salted hash."""
    user = await store.create('alice', 'a@x.com', 'secret1')

    assert user.id is not None
    assert user.username == 'alice'
    assert user.email == 'a@x.com'

    async with session_factory() as db:
        stored = (await db.execute(select(User))).scalar_one()
    assert stored.password_hash != 'secret1'
    assert stored.password_hash.startswith('$2')


@pytest.mark.anyio
async def test_same_password_gets_different_hashes(store, session_factory):
    """Test that each user gets its own salt."""
    await store.create('alice', 'a@x.com', 'secret1')
    await store.create('bob', 'b@x.com', 'secret1')

    async with session_factory() as db:
        hashes = (await db.execute(select(User.password_hash))).scalars().all()
    assert hashes[0] != hashes[1]


@pytest.mark.anyio
async def test_verify_correct_and_wrong_password(store):
    """Test verify accepts the right password only."""
    await store.create('alice', 'a@x.com', 'secret1')

    assert await store.verify('alice', 'secret1') is True
    assert await store.verify('alice', 'wrong') is False
    assert await store.verify('alice', '') is False


@pytest.mark.anyio
async def test_verify_unknown_user(store):
    """Test that a never-created username never verifies."""
    await store.create('alice', 'a@x.com', 'secret1')

    assert await store.verify('mallory', 'secret1') is False


@pytest.mark.anyio
@pytest.mark.parametrize('password', ['secret1', 'different-password'])
async def test_duplicate_username_conflicts(store, password):
    """Test duplicate usernames fail regardless of password."""
    await store.create('alice', 'a@x.com', 'secret1')

    with pytest.raises(Conflict):
        await store.create('alice', 'other@x.com', password)


@pytest.mark.anyio
async def test_duplicate_email_conflicts(store, session_factory):
    """Test duplicate emails fail and leave one user stored."""
    await store.create('alice', 'a@x.com', 'secret1')

    with pytest.raises(Conflict):
        await store.create('alice2', 'a@x.com', 'secret1')

    async with session_factory() as db:
        users = (await db.execute(select(User))).scalars().all()
    assert len(users) == 1


@pytest.mark.anyio
async def test_create_invalid_input_reports_all_fields(store):
    """Test that every invalid field is reported together."""
    with pytest.raises(InvalidInput) as exc_info:
        await store.create('  ', 'not-an-email', '12345')

    fields = [error['field'] for error in exc_info.value.errors]
    assert fields == ['username', 'email', 'password']


def test_validate_signup_accepts_valid_input():
    """Test a valid signup produces no errors."""
    assert validate_signup('alice', 'a@x.com', 'secret1') == []


def test_validate_signup_password_boundary():
    """Test six characters is the minimum password length."""
    assert validate_signup('alice', 'a@x.com', '123456') == []
    errors = validate_signup('alice', 'a@x.com', '12345')
    assert errors[0]['field'] == 'password'


@pytest.mark.anyio
async def test_create_rejects_password_past_bcrypt_limit(store):
    """Test passwords longer than 72 bytes are refused at signup."""
    with pytest.raises(InvalidInput) as exc_info:
        await store.create('alice', 'a@x.com', 'a' * 72 + 'RIGHT')

    assert [e['field'] for e in exc_info.value.errors] == ['password']


@pytest.mark.anyio
async def test_verify_rejects_longer_password_sharing_prefix(store):
    """Test a password that only shares the first 72 bytes never verifies."""
    password = 'a' * 72
    await store.create('alice', 'a@x.com', password)

    assert await store.verify('alice', password) is True
    assert await store.verify('alice', password + 'WRONG') is False


def test_validate_signup_counts_bytes_not_characters():
    """Test the upper limit is measured in UTF-8 bytes."""
    assert validate_signup('alice', 'a@x.com', 'é' * 36) == []
    errors = validate_signup('alice', 'a@x.com', 'é' * 37)
    assert errors[0]['field'] == 'password'


@pytest.mark.anyio
async def test_verify_strips_username_like_signup(store):
    """Test the username is normalized the same way at login."""
    await store.create(' alice ', 'a@x.com', 'secret1')

    assert await store.verify(' alice ', 'secret1') is True
    assert await store.verify('alice', 'secret1') is True
