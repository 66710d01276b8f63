import random

from backend.presence import PresenceTable


def assert_consistent(table: PresenceTable):
    """Codes in the connection index are exactly the codes of online users."""
    codes = {table.code_for(u) for u in table.online_usernames()}
    assert set(table.online_codes()) == codes
    for username in table.online_usernames():
        assert table.connection_for(table.code_for(username)) is table.holder_of(username)


def test_set_online_indexes_both_ways():
    table, conn = PresenceTable(), object()
    assert table.set_online('ana', 'ABC123', conn)
    assert table.is_online('ana')
    assert table.code_for('ana') == 'ABC123'
    assert table.connection_for('ABC123') is conn
    assert table.online_usernames() == ['ana']


def test_second_connection_for_same_username_is_refused():
    table, first, second = PresenceTable(), object(), object()
    table.set_online('ana', 'ABC123', first)
    assert not table.set_online('ana', 'ABC123', second)
    assert not table.set_online('ana', 'ZZZ999', second)
    assert table.connection_for('ABC123') is first
    assert table.online_codes() == ['ABC123']


def test_repeat_on_same_connection_is_accepted():
    table, conn = PresenceTable(), object()
    table.set_online('ana', 'ABC123', conn)
    assert table.set_online('ana', 'ABC123', conn)
    assert len(table) == 1


def test_code_held_by_another_user_is_refused():
    table = PresenceTable()
    table.set_online('ana', 'ABC123', object())
    assert not table.set_online('bob', 'ABC123', object())
    assert not table.is_online('bob')


def test_set_offline_is_idempotent():
    table, conn = PresenceTable(), object()
    table.set_online('ana', 'ABC123', conn)
    assert table.set_offline('ana', 'ABC123')
    assert not table.set_offline('ana', 'ABC123')
    assert table.online_usernames() == []
    assert table.connection_for('ABC123') is None


def test_set_offline_leaves_other_connections_alone():
    table, owner, stale = PresenceTable(), object(), object()
    table.set_online('ana', 'ABC123', owner)
    assert not table.set_offline('ana', 'ABC123', stale)
    assert not table.set_offline('ana', 'OTHER1', owner)
    assert table.holder_of('ana') is owner


def test_random_online_offline_sequences_stay_consistent():
    rng = random.Random(1234)
    table = PresenceTable()
    users = {f'user{i}': f'CODE{i:02d}' for i in range(8)}
    conns = [object() for _ in range(4)]
    for _ in range(500):
        username = rng.choice(sorted(users))
        conn = rng.choice(conns)
        if rng.random() < 0.6:
            table.set_online(username, users[username], conn)
        else:
            table.set_offline(username, users[username], rng.choice([conn, None]))
        assert_consistent(table)
