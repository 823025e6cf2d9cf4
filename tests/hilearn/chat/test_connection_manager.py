import asyncio

from hilearn.chat.manager import ConnectionManager


class FakeSocket:
    def __init__(self):
        self.sent = []

    async def send_json(self, data):
        self.sent.append(data)


class ClosedSocket:
    async def send_json(self, data):
        raise RuntimeError('Cannot call "send" once a close message has been sent.')


def test_emit_reaches_every_socket_in_the_room() -> None:
    connections = ConnectionManager()
    first_tab, second_tab, someone_else = FakeSocket(), FakeSocket(), FakeSocket()

    async def scenario():
        await connections.join(7, first_tab)
        await connections.join(7, second_tab)
        await connections.join(8, someone_else)
        return await connections.emit(7, 'newMessage', {'id': 1})

    delivered = asyncio.run(scenario())

    assert delivered == 2
    assert first_tab.sent == [{'event': 'newMessage', 'data': {'id': 1}}]
    assert second_tab.sent == [{'event': 'newMessage', 'data': {'id': 1}}]
    assert someone_else.sent == []


def test_emit_to_empty_room_is_a_no_op() -> None:
    connections = ConnectionManager()

    assert asyncio.run(connections.emit(42, 'newMessage', {'id': 1})) == 0


def test_leave_drops_empty_rooms() -> None:
    connections = ConnectionManager()
    first_tab, second_tab = FakeSocket(), FakeSocket()

    async def scenario():
        await connections.join(7, first_tab)
        await connections.join(7, second_tab)
        await connections.leave(7, first_tab)
        assert connections.connection_count(7) == 1
        await connections.leave(7, second_tab)
        await connections.leave(7, second_tab)

    asyncio.run(scenario())

    assert 7 not in connections.rooms
    assert connections.connection_count(7) == 0


def test_dead_sockets_are_removed_during_emit() -> None:
    connections = ConnectionManager()
    live, dead = FakeSocket(), ClosedSocket()

    async def scenario():
        await connections.join(3, live)
        await connections.join(3, dead)
        return await connections.emit(3, 'typing', {'senderId': 9})

    delivered = asyncio.run(scenario())

    assert delivered == 1
    assert connections.rooms[3] == {live}
    assert live.sent == [{'event': 'typing', 'data': {'senderId': 9}}]
