# Pydantic models for stored users, socket payloads and HTTP bodies.
from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from .errors import ValidationError

MAX_USERNAME_LENGTH = 32


class User(BaseModel):
    """A document of the ``users`` collection."""
    username: str
    code: str
    password_hash: Optional[str] = None

    @classmethod
    def from_doc(cls, doc: Optional[dict]) -> Optional['User']:
        if doc is None:
            return None
        return cls(username=doc['username'], code=doc['code'],
                   password_hash=doc.get('password_hash'))

    def to_doc(self) -> dict:
        doc = {'username': self.username, 'code': self.code}
        if self.password_hash is not None:
            doc['password_hash'] = self.password_hash
        return doc


class ConnectionBinding(BaseModel):
    """Identity bound to one live connection after a successful handshake."""
    model_config = ConfigDict(frozen=True)

    username: str
    code: str


# --- handshake variants ---

class UsernameOnly(BaseModel):
    model_config = ConfigDict(frozen=True)

    username: str


class PreAuthenticated(BaseModel):
    model_config = ConfigDict(frozen=True)

    username: str
    code: str


HandshakeRequest = Union[UsernameOnly, PreAuthenticated]


def clean_username(raw: Any) -> str:
    if not isinstance(raw, str) or not raw.strip():
        raise ValidationError('username is required')
    username = raw.strip()
    if len(username) > MAX_USERNAME_LENGTH:
        raise ValidationError(f'username must be at most {MAX_USERNAME_LENGTH} characters')
    return username


def clean_code(raw: Any) -> str:
    if not isinstance(raw, str) or not raw.strip():
        raise ValidationError('friend code is required')
    return raw.strip().upper()


def parse_handshake(data: Any) -> HandshakeRequest:
    """Resolve a ``register`` payload into one of the handshake variants.

    Accepts a bare username string, ``{'username': ...}`` or
    ``{'username': ..., 'code': ...}`` (the pair handed out by /api/login).
    """
    if isinstance(data, str):
        return UsernameOnly(username=clean_username(data))
    if isinstance(data, dict):
        username = clean_username(data.get('username'))
        if data.get('code') is None:
            return UsernameOnly(username=username)
        return PreAuthenticated(username=username, code=clean_code(data.get('code')))
    raise ValidationError('register expects a username or {username, code}')


# --- other socket payloads ---

class PrivateMessageRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    to_code: str = Field(..., alias='toCode')
    message: str

    @classmethod
    def parse(cls, data: Any) -> 'PrivateMessageRequest':
        if not isinstance(data, dict):
            raise ValidationError('private message expects {toCode, message}')
        try:
            req = cls.model_validate(data)
        except PydanticValidationError:
            raise ValidationError('private message expects {toCode, message}')
        if not req.message.strip():
            raise ValidationError('message is empty')
        return req.model_copy(update={'to_code': clean_code(req.to_code)})


def parse_friend_code(data: Any) -> str:
    if isinstance(data, dict):
        data = data.get('friendCode')
    return clean_code(data)


class FriendLookup(BaseModel):
    found: bool
    username: Optional[str] = None
    code: Optional[str] = None


# --- HTTP bodies ---

class Credentials(BaseModel):
    username: str = ''
    password: str = ''


class DeleteAccountRequest(BaseModel):
    username: str = ''
