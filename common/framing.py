"""
Shared helpers for the JSON frames exchanged over the chat WebSocket.
Format: one UTF-8 JSON object per text message,
    {"type": <event name>, "id": <optional request id>, "data": <payload>}
Replies to ack-bearing events use type "ack" and echo the request id.
"""
import json

# client -> server
REGISTER = 'register'
ADD_FRIEND = 'add friend'
PRIVATE_MESSAGE = 'private message'

# server -> client
ACK = 'ack'
ONLINE_USERS = 'online users update'
SYSTEM_MESSAGE = 'system message'
ERROR = 'error'


class FrameError(ValueError):
    pass


def encode_frame(type_, data=None, id_=None):
    frame = {'type': type_, 'data': data}
    if id_ is not None:
        frame['id'] = id_
    return json.dumps(frame, separators=(',', ':'))


def decode_frame(text):
    try:
        frame = json.loads(text)
    except (TypeError, json.JSONDecodeError) as e:
        raise FrameError('invalid json') from e
    if not isinstance(frame, dict):
        raise FrameError('frame must be an object')
    if not isinstance(frame.get('type'), str):
        raise FrameError('frame is missing a type')
    return frame
