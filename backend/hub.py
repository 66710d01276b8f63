"""
ChatHub: the handshake, friend lookup, private-message router and presence
broadcaster on top of the PresenceTable and ConnectionRegistry.

Per connection the state machine is  Unbound -> Bound -> (disconnect).
Only register() binds; every other operation needs a bound connection.

The only suspension point that matters is the identity store round-trip
inside register(). Everything that mutates presence happens after it, in one
synchronous step, and only if the connection is still open.
"""
import asyncio
import logging
from typing import Optional

from common.framing import (ADD_FRIEND, ERROR, ONLINE_USERS, PRIVATE_MESSAGE,
                            REGISTER, SYSTEM_MESSAGE)

from .codes import issue_unique_code
from .config import DEFAULT_CODE_ALPHABET
from .connections import Connection, ConnectionRegistry
from .errors import (AlreadyOnlineError, ChatError, ConflictError,
                     DuplicateUserError, StorageError, ValidationError)
from .models import (ConnectionBinding, FriendLookup, PreAuthenticated,
                     PrivateMessageRequest, User, parse_friend_code,
                     parse_handshake)
from .presence import PresenceTable

log = logging.getLogger('potencia.hub')


class ChatHub:
    def __init__(self, store, code_alphabet: str = DEFAULT_CODE_ALPHABET,
                 code_length: int = 6, code_attempts: int = 10):
        self.store = store
        self.presence = PresenceTable()
        self.connections = ConnectionRegistry()
        self.code_alphabet = code_alphabet
        self.code_length = code_length
        self.code_attempts = code_attempts
        # one roster push at a time, so the last list a client sees is current
        self._broadcast_lock = asyncio.Lock()

    # ---- connection lifecycle ----

    async def connect(self, websocket) -> Connection:
        conn = Connection(websocket)
        self.connections.add(conn)
        log.info('connection %s opened (%d live)', conn.label, len(self.connections))
        async with self._broadcast_lock:
            await conn.send(ONLINE_USERS, self.presence.online_usernames())
        return conn

    async def disconnect(self, conn: Connection):
        """Drop conn and whatever presence it holds. Safe to call twice."""
        conn.closed = True
        self.connections.remove(conn)
        log.info('connection %s closed (%d live)', conn.label, len(self.connections))
        binding, conn.binding = conn.binding, None
        if binding is None:
            return
        if self.presence.set_offline(binding.username, binding.code, conn):
            await self.broadcast_presence()

    async def broadcast_presence(self):
        async with self._broadcast_lock:
            online = self.presence.online_usernames()
            log.debug('broadcasting %d online user(s) to %d connection(s)',
                      len(online), len(self.connections))
            for conn in self.connections.all():
                await conn.send(ONLINE_USERS, online)

    # ---- frame dispatch ----

    async def handle_frame(self, conn: Connection, frame: dict):
        type_ = frame.get('type')
        data = frame.get('data')
        id_ = frame.get('id')
        if type_ == REGISTER:
            await conn.ack(id_, await self._reply(self.register(conn, data)))
        elif type_ == ADD_FRIEND:
            await conn.ack(id_, await self._reply(self._add_friend_ack(conn, data)))
        elif type_ == PRIVATE_MESSAGE:
            try:
                req = PrivateMessageRequest.parse(data)
            except ValidationError as e:
                log.debug('dropping private message from %s: %s', conn.label, e.message)
                return
            await self.route(conn, req.to_code, req.message)
        else:
            await conn.send(ERROR, {'why': 'unknown type'}, id_)

    async def _reply(self, operation) -> dict:
        """Await a handler and shape the single ack it produces."""
        try:
            return await operation
        except StorageError as e:
            # already logged with traceback by the store
            log.warning('request failed on storage: %s', e.message)
            return {'success': False, 'message': 'server error'}
        except ChatError as e:
            return {'success': False, 'message': e.message}

    # ---- handshake ----

    async def register(self, conn: Connection, data) -> dict:
        request = parse_handshake(data)
        username = request.username

        if conn.binding is not None:
            return self._rebind(conn, request)

        if self.presence.is_online(username):
            log.info('register %s on %s rejected: already online', username, conn.label)
            raise AlreadyOnlineError(username)

        if isinstance(request, PreAuthenticated):
            code = request.code
        else:
            user = await self._find_or_create(username)
            code = user.code

        if conn.closed:
            # disconnected while the store was busy
            log.info('register %s abandoned: %s closed mid-handshake', username, conn.label)
            raise ConflictError('connection closed')
        if conn.binding is not None:
            # another register on this connection finished while we waited
            return self._rebind(conn, request)
        if not self.presence.set_online(username, code, conn):
            log.info('register %s on %s rejected: lost race', username, conn.label)
            raise AlreadyOnlineError(username)

        conn.binding = ConnectionBinding(username=username, code=code)
        log.info('%s registered as %s with code %s', conn.label, username, code)
        await self.broadcast_presence()
        return self._accepted(conn.binding)

    def _rebind(self, conn: Connection, request) -> dict:
        """Answer a handshake on an already bound connection."""
        binding = conn.binding
        if binding.username == request.username and (
                not isinstance(request, PreAuthenticated) or request.code == binding.code):
            return self._accepted(binding)
        raise ConflictError(f'connection already registered as {binding.username}')

    @staticmethod
    def _accepted(binding: ConnectionBinding) -> dict:
        return {'success': True, 'username': binding.username, 'userCode': binding.code}

    async def _find_or_create(self, username: str) -> User:
        user = await self.store.find_by_username(username)
        if user is not None:
            return user
        for _ in range(self.code_attempts):
            code = await issue_unique_code(self.store, self.code_alphabet,
                                           self.code_length, self.code_attempts)
            try:
                return await self.store.create(username, code)
            except DuplicateUserError as e:
                # someone created the same user (or took the code) meanwhile
                log.debug('create %s clashed on %s, re-reading', username, e.field)
                user = await self.store.find_by_username(username)
                if user is not None:
                    return user
        raise StorageError('could not allocate a friend code')

    # ---- friend lookup ----

    async def add_friend(self, friend_code: str, requester_code: str) -> FriendLookup:
        if friend_code == requester_code:
            raise ValidationError('you cannot add yourself as a friend')
        user = await self.store.find_by_code(friend_code)
        if user is None:
            return FriendLookup(found=False)
        return FriendLookup(found=True, username=user.username, code=user.code)

    async def _add_friend_ack(self, conn: Connection, data) -> dict:
        if conn.binding is None:
            raise ValidationError('register before adding friends')
        friend_code = parse_friend_code(data)
        lookup = await self.add_friend(friend_code, conn.binding.code)
        if not lookup.found:
            log.debug('%s looked up unknown code %s', conn.label, friend_code)
            return {'success': False, 'message': f'no user with code {friend_code}'}
        return {'success': True, 'code': lookup.code, 'username': lookup.username}

    # ---- router ----

    async def route(self, sender: Connection, to_code: str, message: str):
        binding = sender.binding
        if binding is None:
            log.debug('ignoring private message from unbound %s', sender.label)
            return

        target: Optional[Connection] = self.presence.connection_for(to_code)
        if target is not None and not target.closed:
            await target.send(PRIVATE_MESSAGE, {'from': binding.username, 'message': message})
            await sender.send(PRIVATE_MESSAGE, {'from': binding.username, 'message': message, 'self': True})
            log.debug('%s -> %s delivered', binding.username, to_code)
            return

        text = await self._undeliverable_text(to_code)
        log.debug('%s -> %s not delivered: %s', binding.username, to_code, text)
        await sender.send(SYSTEM_MESSAGE, {'recipient': to_code, 'text': text})

    async def _undeliverable_text(self, to_code: str) -> str:
        try:
            user = await self.store.find_by_code(to_code)
        except StorageError:
            return 'message could not be delivered right now'
        if user is None:
            return f'no user has the code {to_code}'
        return f'{user.username} is offline'
