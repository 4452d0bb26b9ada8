import pytest

from platzigram_db.security import Sha256PasswordHasher, BcryptPasswordHasher
from platzigram_db.user_service.service import UserRepository
from platzigram_db.exceptions import SchemaError, UserNotFoundError, StorageError, NotConnectedError


def make_user(**overrides):
    user = {
        "name": "Ana Pérez",
        "username": "anaperez",
        "email": "ana@platzigram.test",
        "password": "s3cret",
    }
    user.update(overrides)
    return user


# ------------------------------
# save_user
# ------------------------------

@pytest.mark.asyncio
async def test_save_user(users):
    user = make_user()
    created = await users.save_user(user)

    assert created.id
    assert created.username == user["username"]
    assert created.name == user["name"]
    assert created.email == user["email"]
    assert created.created_at is not None
    assert created.password == Sha256PasswordHasher().hash(user["password"])


@pytest.mark.asyncio
async def test_save_federated_user_keeps_no_password(users):
    created = await users.save_user({"username": "fbuser", "facebook": True, "name": "From Facebook"})
    assert created.facebook is True
    assert created.password is None


@pytest.mark.asyncio
async def test_save_federated_user_drops_supplied_password(users):
    created = await users.save_user({"username": "fbuser", "facebook": True, "password": "contraseña"})
    assert created.password is None
    assert await users.authenticate("fbuser", "contraseña") is False


@pytest.mark.asyncio
async def test_save_user_requires_password(users):
    with pytest.raises(SchemaError):
        await users.save_user({"username": "nopass"})


@pytest.mark.asyncio
async def test_save_user_duplicate_username(users):
    await users.save_user(make_user())
    with pytest.raises(SchemaError):
        await users.save_user(make_user(email="other@platzigram.test"))


@pytest.mark.asyncio
async def test_save_user_insert_error_raises_schema_error(mocked_manager, fake_conn):
    fake_conn.insert.return_value = {"inserted": 0, "errors": 1, "first_error": "rejected", "generated_keys": []}
    await mocked_manager.connect()
    with pytest.raises(SchemaError) as info:
        await UserRepository(mocked_manager).save_user(make_user())
    assert info.value.first_error == "rejected"


# ------------------------------
# get_user
# ------------------------------

@pytest.mark.asyncio
async def test_get_user(users):
    created = await users.save_user(make_user())
    result = await users.get_user(created.username)
    assert result == created


@pytest.mark.asyncio
async def test_get_user_not_found(users):
    with pytest.raises(UserNotFoundError):
        await users.get_user("nobody")


# ------------------------------
# authenticate
# ------------------------------

@pytest.mark.asyncio
async def test_authenticate(users):
    user = make_user()
    await users.save_user(user)

    assert await users.authenticate(user["username"], user["password"]) is True
    assert await users.authenticate(user["username"], "wrong") is False
    assert await users.authenticate("nonexistent", "anything") is False


@pytest.mark.asyncio
async def test_authenticate_federated_user_fails(users):
    await users.save_user({"username": "fbuser", "facebook": True})
    assert await users.authenticate("fbuser", "") is False


@pytest.mark.asyncio
async def test_authenticate_with_bcrypt_hasher(manager):
    users = UserRepository(manager, hasher=BcryptPasswordHasher(rounds=4))
    created = await users.save_user(make_user())
    assert created.password.startswith("$2")
    assert await users.authenticate("anaperez", "s3cret") is True
    assert await users.authenticate("anaperez", "nope") is False


@pytest.mark.asyncio
async def test_authenticate_absorbs_storage_errors(mocked_manager, fake_conn):
    fake_conn.get_all.side_effect = StorageError("Failed to get user")
    await mocked_manager.connect()
    assert await UserRepository(mocked_manager).authenticate("ana", "pw") is False


@pytest.mark.asyncio
async def test_authenticate_requires_connection(manager):
    users = UserRepository(manager)
    await manager.disconnect()
    with pytest.raises(NotConnectedError):
        await users.authenticate("ana", "pw")


@pytest.mark.asyncio
async def test_authenticate_non_ascii_password(users):
    await users.save_user(make_user(password="contraseña"))
    assert await users.authenticate("anaperez", "contraseña") is True
    assert await users.authenticate("anaperez", "contrasena") is False
    assert await users.authenticate("anaperez", "ñandú") is False


@pytest.mark.asyncio
async def test_authenticate_ignores_password_stored_on_federated_account(users, manager, db_settings):
    # an account written before federated passwords were dropped
    conn = await manager.connection()
    await conn.insert(
        db_settings.database_name,
        "users",
        {"username": "legacyfb", "facebook": True, "password": "contraseña"},
    )
    assert await users.authenticate("legacyfb", "contraseña") is False
    assert await users.authenticate("legacyfb", "x") is False
