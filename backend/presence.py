"""
Presence table: who is online right now.

Holds two maps that must stay consistent:
    username -> code          (presence entries)
    code     -> connection    (connection index)
A code is indexed iff its username has an entry bound to that same connection,
and a username is held by at most one connection. Both maps are private; all
mutation goes through set_online / set_offline, which never await and so are
atomic on the event loop.
"""
import logging
from typing import Dict, List, Optional

log = logging.getLogger('potencia.presence')


class PresenceTable:
    def __init__(self):
        self._codes: Dict[str, str] = {}          # username -> code
        self._connections: Dict[str, object] = {}  # code -> connection

    def set_online(self, username: str, code: str, connection) -> bool:
        """Bind username/code to connection. False (and no change) on conflict."""
        current_code = self._codes.get(username)
        if current_code is not None:
            holder = self._connections.get(current_code)
            if holder is not connection or current_code != code:
                log.debug('set_online(%s) refused: already held', username)
                return False
            return True
        if code in self._connections:
            log.warning('set_online(%s) refused: code %s held by another user', username, code)
            return False
        self._codes[username] = code
        self._connections[code] = connection
        log.debug('%s online as %s', username, code)
        return True

    def set_offline(self, username: str, code: str, connection=None) -> bool:
        """Remove the entries for username/code. Idempotent.

        With a connection given, entries held by any other connection are left
        alone so a stale disconnect never clears someone else's presence.
        """
        if self._codes.get(username) != code:
            return False
        if connection is not None and self._connections.get(code) is not connection:
            return False
        del self._codes[username]
        self._connections.pop(code, None)
        log.debug('%s offline', username)
        return True

    def is_online(self, username: str) -> bool:
        return username in self._codes

    def holder_of(self, username: str):
        code = self._codes.get(username)
        if code is None:
            return None
        return self._connections.get(code)

    def connection_for(self, code: str):
        return self._connections.get(code)

    def code_for(self, username: str) -> Optional[str]:
        return self._codes.get(username)

    def online_usernames(self) -> List[str]:
        return sorted(self._codes)

    def online_codes(self) -> List[str]:
        return sorted(self._connections)

    def __len__(self):
        return len(self._codes)
