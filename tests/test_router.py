import pytest

from backend.hub import ChatHub


async def bound(hub, new_socket, username, code=None):
    conn = await hub.connect(new_socket())
    await hub.register(conn, {'username': username, 'code': code} if code else username)
    conn.websocket.clear()
    return conn


async def send(hub, conn, to_code, message):
    await hub.handle_frame(conn, {'type': 'private message',
                                  'data': {'toCode': to_code, 'message': message}})


@pytest.mark.asyncio
async def test_online_recipient_gets_message_and_sender_gets_echo(hub, new_socket):
    ana = await bound(hub, new_socket, 'ana')
    bob = await bound(hub, new_socket, 'bob')
    carla = await bound(hub, new_socket, 'carla')
    for conn in (ana, bob, carla):
        conn.websocket.clear()

    await send(hub, ana, bob.binding.code, 'hola bob')

    assert bob.websocket.sent == [
        {'type': 'private message', 'data': {'from': 'ana', 'message': 'hola bob'}}]
    assert ana.websocket.sent == [
        {'type': 'private message', 'data': {'from': 'ana', 'message': 'hola bob', 'self': True}}]
    assert carla.websocket.sent == []


@pytest.mark.asyncio
async def test_unknown_code_gets_one_system_message(hub, new_socket):
    ana = await bound(hub, new_socket, 'ana')
    bob = await bound(hub, new_socket, 'bob')
    ana.websocket.clear()

    await send(hub, ana, 'NOPE00', 'anyone?')

    assert ana.websocket.sent == [{'type': 'system message', 'data': {
        'recipient': 'NOPE00', 'text': 'no user has the code NOPE00'}}]
    assert bob.websocket.sent == []


@pytest.mark.asyncio
async def test_known_but_offline_recipient(hub, store, new_socket):
    await store.create('carla', 'CAR123')
    ana = await bound(hub, new_socket, 'ana')

    await send(hub, ana, 'car123', 'are you there?')

    assert ana.websocket.data('system message') == [
        {'recipient': 'CAR123', 'text': 'carla is offline'}]
    assert ana.websocket.data('private message') == []


@pytest.mark.asyncio
async def test_recipient_socket_closing_counts_as_offline(hub, new_socket):
    ana = await bound(hub, new_socket, 'ana')
    bob = await bound(hub, new_socket, 'bob')
    bob.closed = True

    await send(hub, ana, bob.binding.code, 'hola')

    assert ana.websocket.data('system message') == [
        {'recipient': bob.binding.code, 'text': 'bob is offline'}]
    assert bob.websocket.sent == []


@pytest.mark.asyncio
async def test_unbound_sender_is_ignored(hub, new_socket):
    bob = await bound(hub, new_socket, 'bob')
    stranger = await hub.connect(new_socket())
    stranger.websocket.clear()

    await send(hub, stranger, bob.binding.code, 'psst')

    assert stranger.websocket.sent == []
    assert bob.websocket.sent == []


@pytest.mark.asyncio
async def test_empty_or_malformed_messages_are_dropped(hub, new_socket):
    ana = await bound(hub, new_socket, 'ana')
    bob = await bound(hub, new_socket, 'bob')
    ana.websocket.clear()

    await send(hub, ana, bob.binding.code, '   ')
    await hub.handle_frame(ana, {'type': 'private message', 'data': 'hola'})

    assert ana.websocket.sent == []
    assert bob.websocket.sent == []


@pytest.mark.asyncio
async def test_store_failure_while_explaining_undelivered_message(broken_store, new_socket):
    hub = ChatHub(broken_store)
    ana = await bound(hub, new_socket, 'ana', 'ANA111')

    await send(hub, ana, 'BOB222', 'hola')

    assert ana.websocket.data('system message') == [
        {'recipient': 'BOB222', 'text': 'message could not be delivered right now'}]


@pytest.mark.asyncio
async def test_unknown_event_type_gets_error_frame(hub, new_socket):
    conn = await hub.connect(new_socket())
    conn.websocket.clear()
    await hub.handle_frame(conn, {'type': 'typing', 'id': 3})
    assert conn.websocket.sent == [{'type': 'error', 'data': {'why': 'unknown type'}, 'id': 3}]
