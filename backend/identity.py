"""
Identity store: durable user records (username, friend code, password hash).

Two backends share the same async interface:
  - MongoIdentityStore  -- Motor collection with unique indexes on username and code
  - MemoryIdentityStore -- process-local dicts, for development and tests

create() raises DuplicateUserError on a uniqueness clash, which is what makes
concurrent registrations of the same new username safe: the loser re-reads.
Any other storage fault surfaces as StorageError.
"""
import asyncio
import logging
from typing import Dict, Optional

from pymongo.errors import DuplicateKeyError, PyMongoError

from .errors import DuplicateUserError, StorageError
from .models import User

log = logging.getLogger('potencia.identity')


class MongoIdentityStore:
    def __init__(self, collection):
        self.users = collection

    async def ensure_indexes(self):
        try:
            await self.users.create_index('username', unique=True)
            await self.users.create_index('code', unique=True)
        except PyMongoError as e:
            log.exception('could not create user indexes')
            raise StorageError() from e

    async def find_by_username(self, username: str) -> Optional[User]:
        try:
            doc = await self.users.find_one({'username': username})
        except PyMongoError as e:
            log.exception('find_by_username(%s) failed', username)
            raise StorageError() from e
        return User.from_doc(doc)

    async def find_by_code(self, code: str) -> Optional[User]:
        try:
            doc = await self.users.find_one({'code': code})
        except PyMongoError as e:
            log.exception('find_by_code(%s) failed', code)
            raise StorageError() from e
        return User.from_doc(doc)

    async def create(self, username: str, code: str, password_hash: Optional[str] = None) -> User:
        user = User(username=username, code=code, password_hash=password_hash)
        try:
            await self.users.insert_one(user.to_doc())
        except DuplicateKeyError as e:
            key_pattern = (e.details or {}).get('keyPattern') or {}
            raise DuplicateUserError('code' if 'code' in key_pattern else 'username') from e
        except PyMongoError as e:
            log.exception('create(%s) failed', username)
            raise StorageError() from e
        log.info('created user %s with code %s', username, code)
        return user

    async def delete(self, username: str) -> bool:
        try:
            result = await self.users.delete_one({'username': username})
        except PyMongoError as e:
            log.exception('delete(%s) failed', username)
            raise StorageError() from e
        return result.deleted_count > 0


class MemoryIdentityStore:
    """Dict-backed store. Each call yields to the loop once, like a round-trip."""

    def __init__(self):
        self._by_username: Dict[str, User] = {}
        self._by_code: Dict[str, User] = {}

    async def ensure_indexes(self):
        pass

    async def find_by_username(self, username: str) -> Optional[User]:
        await asyncio.sleep(0)
        return self._by_username.get(username)

    async def find_by_code(self, code: str) -> Optional[User]:
        await asyncio.sleep(0)
        return self._by_code.get(code)

    async def create(self, username: str, code: str, password_hash: Optional[str] = None) -> User:
        await asyncio.sleep(0)
        if username in self._by_username:
            raise DuplicateUserError('username')
        if code in self._by_code:
            raise DuplicateUserError('code')
        user = User(username=username, code=code, password_hash=password_hash)
        self._by_username[username] = user
        self._by_code[code] = user
        log.info('created user %s with code %s', username, code)
        return user

    async def delete(self, username: str) -> bool:
        await asyncio.sleep(0)
        user = self._by_username.pop(username, None)
        if user is None:
            return False
        self._by_code.pop(user.code, None)
        return True
