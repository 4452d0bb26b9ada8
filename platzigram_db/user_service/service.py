from datetime import datetime, timezone
from typing import Any, Dict, Optional, Union
import logging
from pydantic import ValidationError

from platzigram_db.storage.connection import ConnectionManager
from platzigram_db.storage.schema import USERS_TABLE
from platzigram_db.user_service.models import User
from platzigram_db.security import PasswordHasher, default_hasher
from platzigram_db.exceptions import DatabaseException, SchemaError, UserNotFoundError, wrap_storage_errors

log = logging.getLogger(__name__)

class UserRepository:
    """Account records and credential checks."""

    def __init__(self, connections: ConnectionManager, hasher: Optional[PasswordHasher] = None):
        self.connections = connections
        self.hasher = hasher or default_hasher

    @property
    def db(self) -> str:
        return self.connections.settings.database_name

    async def save_user(self, user: Union[User, Dict[str, Any]]) -> User:
        """
            Saves a new account. Passwords are hashed; federated accounts
            are stored without one. Usernames are checked against the
            username index before inserting.
        """
        conn = await self.connections.connection()
        try:
            user = User.model_validate(user) if isinstance(user, dict) else user.model_copy()
        except ValidationError as e:
            raise SchemaError(str(e)) from e
        if user.facebook:
            user.password = None
        else:
            user.password = self.hasher.hash(user.password)
        user.created_at = datetime.now(timezone.utc)

        with wrap_storage_errors("save user"):
            await conn.index_wait(self.db, USERS_TABLE)
            if await conn.get_all(self.db, USERS_TABLE, user.username, index="username"):
                raise SchemaError(f"Username '{user.username}' is already taken.")

            result = await conn.insert(self.db, USERS_TABLE, user.to_item())
            if result["errors"] > 0:
                log.error("User insert rejected: %s", result["first_error"])
                raise SchemaError(result["first_error"])

            created = await conn.get(self.db, USERS_TABLE, result["generated_keys"][0])

        log.info("Saved user %s", user.username)
        return User.model_validate(created)

    async def get_user(self, username: str) -> User:
        """Gets an account by username."""
        conn = await self.connections.connection()
        with wrap_storage_errors("get user"):
            # a freshly created index may still be building
            await conn.index_wait(self.db, USERS_TABLE)
            users = await conn.get_all(self.db, USERS_TABLE, username, index="username")
        if not users:
            raise UserNotFoundError(username)
        return User.model_validate(users[0])

    async def authenticate(self, username: str, password: str) -> bool:
        """
            Checks a username/password pair.

            Any failed lookup is reported as a plain ``False`` so callers
            cannot tell an unknown username from a wrong password.
        """
        await self.connections.connection()
        try:
            user = await self.get_user(username)
        except DatabaseException as e:
            log.debug("Authentication lookup for %s failed: %s", username, e)
            return False
        if user.facebook or not user.password:
            return False
        return self.hasher.verify(password, user.password)
