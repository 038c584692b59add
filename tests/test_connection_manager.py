import asyncio

from chatrooms.services.connection_manager import ConnectionManager


class FakeWebSocket:
    def __init__(self):
        self.accepted = False
        self.sent = []
        self.broken = False

    async def accept(self):
        self.accepted = True

    async def send_json(self, data):
        if self.broken:
            raise RuntimeError("connection closed")
        self.sent.append(data)

    def types(self):
        return [message["type"] for message in self.sent]


ALICE = {"id": 1, "name": "Alice"}
BOB = {"id": 2, "name": "Bob"}


def run(coro):
    return asyncio.run(coro)


def test_connect_assigns_unique_socket_ids():
    manager = ConnectionManager()
    sockets = [FakeWebSocket() for _ in range(3)]

    ids = [run(manager.connect(ws, ALICE)) for ws in sockets]

    assert len(set(ids)) == 3
    assert all(ws.accepted for ws in sockets)
    assert sockets[0].sent == [{"type": "connected", "socket_id": ids[0]}]


def test_broadcast_skips_the_excluded_socket():
    async def scenario():
        manager = ConnectionManager()
        alice_ws, bob_ws = FakeWebSocket(), FakeWebSocket()
        alice = await manager.connect(alice_ws, ALICE)
        bob = await manager.connect(bob_ws, BOB)
        await manager.subscribe(alice, "chatroom.1")
        await manager.subscribe(bob, "chatroom.1")

        delivered = await manager.broadcast_to_channel("chatroom.1", {"type": "event"}, except_socket=alice)
        return delivered, alice_ws, bob_ws

    delivered, alice_ws, bob_ws = run(scenario())

    assert delivered == 1
    assert bob_ws.types()[-1] == "event"
    assert "event" not in alice_ws.types()


def test_broadcast_skips_every_connection_of_the_excluded_user():
    async def scenario():
        manager = ConnectionManager()
        phone, laptop, bob_ws = FakeWebSocket(), FakeWebSocket(), FakeWebSocket()
        for ws, user in ((phone, ALICE), (laptop, ALICE), (bob_ws, BOB)):
            await manager.subscribe(await manager.connect(ws, user), "chatroom.1")

        await manager.broadcast_to_channel("chatroom.1", {"type": "event"}, except_user=ALICE["id"])
        return phone, laptop, bob_ws

    phone, laptop, bob_ws = run(scenario())

    assert "event" not in phone.types()
    assert "event" not in laptop.types()
    assert "event" in bob_ws.types()


def test_broadcast_only_reaches_the_channel():
    async def scenario():
        manager = ConnectionManager()
        here, there = FakeWebSocket(), FakeWebSocket()
        await manager.subscribe(await manager.connect(here, ALICE), "chatroom.1")
        await manager.subscribe(await manager.connect(there, BOB), "chatroom.2")

        await manager.broadcast_to_channel("chatroom.1", {"type": "event"})
        empty = await manager.broadcast_to_channel("chatroom.3", {"type": "event"})
        return here, there, empty

    here, there, empty = run(scenario())

    assert "event" in here.types()
    assert "event" not in there.types()
    assert empty == 0


def test_failed_sends_drop_the_connection():
    async def scenario():
        manager = ConnectionManager()
        healthy, dead = FakeWebSocket(), FakeWebSocket()
        await manager.subscribe(await manager.connect(healthy, ALICE), "chatroom.1")
        dead_id = await manager.connect(dead, BOB)
        await manager.subscribe(dead_id, "chatroom.1")
        dead.broken = True

        delivered = await manager.broadcast_to_channel("chatroom.1", {"type": "event"})
        return manager, healthy, dead_id, delivered

    manager, healthy, dead_id, delivered = run(scenario())

    assert delivered == 1
    assert dead_id not in manager.connections
    assert manager.members("chatroom.1") == [ALICE]
    assert healthy.sent[-1] == {"type": "member_removed", "channel": "chatroom.1", "member": BOB}


def test_presence_counts_users_not_connections():
    async def scenario():
        manager = ConnectionManager()
        bob_ws = FakeWebSocket()
        await manager.subscribe(await manager.connect(bob_ws, BOB), "chatroom.1")
        phone = await manager.connect(FakeWebSocket(), ALICE)
        laptop = await manager.connect(FakeWebSocket(), ALICE)
        await manager.subscribe(phone, "chatroom.1")
        await manager.subscribe(laptop, "chatroom.1")
        members = manager.members("chatroom.1")

        await manager.disconnect(phone)
        after_phone = list(bob_ws.types())
        await manager.disconnect(laptop)
        return manager, members, after_phone, bob_ws

    manager, members, after_phone, bob_ws = run(scenario())

    assert sorted(m["name"] for m in members) == ["Alice", "Bob"]
    assert after_phone.count("member_added") == 1
    assert "member_removed" not in after_phone
    assert bob_ws.types().count("member_removed") == 1
    assert manager.get_channels_info() == {"chatroom.1": {"connections": 1, "members": 1}}


def test_disconnect_forgets_everything():
    async def scenario():
        manager = ConnectionManager()
        socket_id = await manager.connect(FakeWebSocket(), ALICE)
        await manager.subscribe(socket_id, "chatroom.1")
        await manager.subscribe(socket_id, "chatroom.2")
        await manager.disconnect(socket_id)
        await manager.disconnect(socket_id)
        return manager

    manager = run(scenario())

    assert manager.connections == {}
    assert manager.connection_users == {}
    assert manager.connection_channels == {}
    assert manager.channels == {}


def test_unsubscribe_only_affects_that_channel():
    async def scenario():
        manager = ConnectionManager()
        ws = FakeWebSocket()
        socket_id = await manager.connect(ws, ALICE)
        await manager.subscribe(socket_id, "chatroom.1")
        await manager.subscribe(socket_id, "chatroom.2")
        await manager.unsubscribe(socket_id, "chatroom.1")
        return manager, socket_id, ws

    manager, socket_id, ws = run(scenario())

    assert manager.connection_channels[socket_id] == {"chatroom.2"}
    assert "chatroom.1" not in manager.channels
    assert ws.sent[-1] == {"type": "unsubscribed", "channel": "chatroom.1"}


def test_unsubscribe_from_a_channel_never_joined_still_answers():
    async def scenario():
        manager = ConnectionManager()
        ws = FakeWebSocket()
        socket_id = await manager.connect(ws, ALICE)
        await manager.unsubscribe(socket_id, "chatroom.9")
        return manager, ws

    manager, ws = run(scenario())

    assert ws.sent[-1] == {"type": "unsubscribed", "channel": "chatroom.9"}
    assert manager.channels == {}
