# Per-connection state and the registry of every live connection.
import itertools
import logging
from typing import Dict, List, Optional

from common.framing import ACK, encode_frame

from .models import ConnectionBinding

log = logging.getLogger('potencia.connections')

_ids = itertools.count(1)


class Connection:
    """One live WebSocket plus the identity it is bound to, if any.

    ``binding`` is only assigned by the hub's handshake handler; everything else
    reads it.
    """

    def __init__(self, websocket, conn_id: Optional[int] = None):
        self.websocket = websocket
        self.id = conn_id if conn_id is not None else next(_ids)
        self.binding: Optional[ConnectionBinding] = None
        self.closed = False

    @property
    def label(self) -> str:
        if self.binding is None:
            return f'#{self.id}'
        return f'#{self.id}({self.binding.username})'

    async def send(self, type_, data=None, id_=None) -> bool:
        """Push one frame. Returns False instead of raising if the socket is gone."""
        if self.closed:
            return False
        try:
            await self.websocket.send_text(encode_frame(type_, data, id_))
        except Exception as e:
            log.warning('send %r to %s failed: %s', type_, self.label, e)
            return False
        return True

    async def ack(self, id_, data) -> bool:
        return await self.send(ACK, data, id_)


class ConnectionRegistry:
    def __init__(self):
        self._connections: Dict[int, Connection] = {}

    def add(self, connection: Connection):
        self._connections[connection.id] = connection

    def remove(self, connection: Connection) -> bool:
        return self._connections.pop(connection.id, None) is not None

    def all(self) -> List[Connection]:
        return list(self._connections.values())

    def __len__(self):
        return len(self._connections)
