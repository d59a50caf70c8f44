import asyncio
from collections.abc import Callable

import pytest
import pytest_asyncio

from hanna_irc.config import BotConfig
from hanna_irc.errors import NetworkError
from hanna_irc.irc.client import AsyncIRCClient
from hanna_irc.irc.connection import ConnectionState, ReconnectBackoff


class FakeIRCServer:
    """Minimal scripted IRC server on a loopback port."""

    def __init__(self) -> None:
        self.received: list[str] = []
        self.connections = 0
        self.writers: list[asyncio.StreamWriter] = []
        self.welcome = True
        self.close_after_names_on_first = False
        self.on_register: Callable[[], None] | None = None
        self.port = 0
        self._server: asyncio.Server | None = None

    async def start(self) -> None:
        self._server = await asyncio.start_server(self._handle, "127.0.0.1", 0)
        self.port = self._server.sockets[0].getsockname()[1]

    async def stop(self) -> None:
        for writer in self.writers:
            writer.close()
        if self._server is not None:
            self._server.close()
            await self._server.wait_closed()

    async def _handle(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        self.connections += 1
        connection = self.connections
        self.writers.append(writer)
        try:
            while line := await reader.readline():
                text = line.decode().rstrip("\r\n")
                self.received.append(text)
                if not await self._respond(text, writer, connection):
                    break
        except ConnectionError:
            pass
        finally:
            writer.close()

    async def _respond(self, line: str, writer: asyncio.StreamWriter, connection: int) -> bool:
        out: list[str] = []
        keep_open = True
        if line.startswith("CAP REQ"):
            out.append(f":irc.test CAP * ACK :{line.split(':', 1)[1]}")
        elif line.startswith("USER "):
            if self.on_register is not None:
                self.on_register()
            if self.welcome:
                out.append(":irc.test 001 Hanna :Welcome to the test network")
            else:
                out.append(":irc.test 464 * :Password incorrect")
        elif line.startswith("JOIN "):
            channel = line.split()[1]
            out += [
                f":Hanna!hanna@bot.host JOIN {channel}",
                f":irc.test 353 Hanna = {channel} :@Hanna alice",
                f":irc.test 366 Hanna {channel} :End of /NAMES list.",
            ]
            keep_open = not (self.close_after_names_on_first and connection == 1)
        elif line.startswith("WHOIS "):
            nick = line.split()[1]
            out += [
                f":irc.test 311 Hanna {nick} a host.example * :Alice",
                f":irc.test 318 Hanna {nick} :End of /WHOIS list.",
            ]
        for reply in out:
            writer.write(f"{reply}\r\n".encode())
        await writer.drain()
        return keep_open

    def lines(self, command: str) -> list[str]:
        return [line for line in self.received if line.startswith(command)]


async def eventually(predicate: Callable[[], bool], timeout: float = 3.0) -> None:
    deadline = asyncio.get_running_loop().time() + timeout
    while not predicate():
        if asyncio.get_running_loop().time() > deadline:
            raise AssertionError("condition not reached in time")
        await asyncio.sleep(0.01)


@pytest_asyncio.fixture
async def irc_server():
    server = FakeIRCServer()
    await server.start()
    yield server
    await server.stop()


def make_client(server: FakeIRCServer, **overrides) -> AsyncIRCClient:
    settings = {
        "host": "127.0.0.1",
        "port": server.port,
        "tls": False,
        "autojoin": ["#room"],
        "capabilities": [],
    }
    settings.update(overrides)
    client = AsyncIRCClient(BotConfig(**settings))
    client.connection_controller.backoff = ReconnectBackoff(base=0.01, jitter=0)
    return client


async def shutdown(client: AsyncIRCClient, task: asyncio.Task) -> None:
    await client.stop()
    await asyncio.wait_for(task, 3)


def _has_room(client: AsyncIRCClient) -> bool:
    return "alice" in client.snapshot().members("#room")


@pytest.mark.asyncio
async def test_registers_joins_and_quits(irc_server):
    client = make_client(irc_server)
    task = asyncio.create_task(client.run())
    await eventually(lambda: _has_room(client))

    assert client.state is ConnectionState.CONNECTED
    assert client.is_healthy()
    assert irc_server.received[:4] == [
        "NICK Hanna",
        "USER hanna 0 * :Hanna IRC bot",
        "MODE Hanna +B",
        "JOIN #room",
    ]
    assert client.snapshot().members("#room") == {"Hanna": "o", "alice": None}

    await shutdown(client, task)
    await eventually(lambda: "QUIT :Shutting down" in irc_server.received)
    assert client.state is ConnectionState.SHUTTING_DOWN
    assert not client.running
    assert client.writer is None


@pytest.mark.asyncio
async def test_password_and_capabilities_are_negotiated(irc_server):
    client = make_client(irc_server, password="secret", capabilities=["multi-prefix"])
    task = asyncio.create_task(client.run())
    await eventually(lambda: _has_room(client))
    assert irc_server.received[:4] == [
        "PASS secret",
        "CAP LS 302",
        "CAP REQ :multi-prefix",
        "NICK Hanna",
    ]
    assert "CAP END" in irc_server.received
    assert client.snapshot().server.capabilities == {"multi-prefix"}
    await shutdown(client, task)


@pytest.mark.asyncio
async def test_reconnects_after_server_close_and_repopulates(irc_server):
    client = make_client(irc_server)
    seen_at_register: list[dict] = []
    irc_server.on_register = lambda: seen_at_register.append(dict(client.snapshot().channels))
    irc_server.close_after_names_on_first = True
    task = asyncio.create_task(client.run())

    await eventually(lambda: irc_server.connections == 2 and _has_room(client))
    assert seen_at_register[1] == {}
    assert client.connection_controller.consecutive_failures == 1
    assert client.state is ConnectionState.CONNECTED
    await shutdown(client, task)


@pytest.mark.asyncio
async def test_fatal_registration_reply_triggers_reconnect(irc_server):
    irc_server.welcome = False
    client = make_client(irc_server)
    task = asyncio.create_task(client.run())
    await eventually(lambda: irc_server.connections >= 2)
    assert any(e.code == "464" for e in client.store.errors())
    assert not client.registered
    await shutdown(client, task)


@pytest.mark.asyncio
async def test_registration_timeout_triggers_reconnect(irc_server):
    irc_server.welcome = False
    irc_server.on_register = None
    client = make_client(irc_server)
    client.registration_timeout = 0.05
    client.read_timeout = 0.02

    async def silent(line, writer, connection):
        return True

    irc_server._respond = silent  # noqa: SLF001
    task = asyncio.create_task(client.run())
    await eventually(lambda: irc_server.connections >= 2)
    assert client.connection_controller.consecutive_failures >= 1
    await shutdown(client, task)


@pytest.mark.asyncio
async def test_connect_failure_backs_off_and_stops_cleanly():
    client = AsyncIRCClient(BotConfig(host="127.0.0.1", port=1, tls=False, capabilities=[]))
    client.connection_controller.backoff = ReconnectBackoff(base=0.01, jitter=0)
    task = asyncio.create_task(client.run())
    await eventually(lambda: client.connection_controller.consecutive_failures >= 2)
    await shutdown(client, task)
    assert client.state is ConnectionState.SHUTTING_DOWN


@pytest.mark.asyncio
async def test_outbound_commands(irc_server):
    client = make_client(irc_server)
    task = asyncio.create_task(client.run())
    await eventually(lambda: _has_room(client))

    assert await client.privmsg("#room", "first line\n\nsecond line") == 2
    await client.notice("alice", "psst")
    await client.part("#room", "later")
    await client.mode("#room", "+o", "alice")
    assert await client.change_nick("new nick!") == "newnick"
    await client.send_raw("AWAY :brb")
    await eventually(lambda: "AWAY :brb" in irc_server.received)

    assert irc_server.lines("PRIVMSG") == [
        "PRIVMSG #room :first line",
        "PRIVMSG #room :second line",
    ]
    assert "NOTICE alice :psst" in irc_server.received
    assert "PART #room :later" in irc_server.received
    assert "MODE #room +o alice" in irc_server.received
    assert "NICK newnick" in irc_server.received
    await shutdown(client, task)


@pytest.mark.asyncio
async def test_long_message_is_chunked(irc_server):
    client = make_client(irc_server)
    task = asyncio.create_task(client.run())
    await eventually(lambda: _has_room(client))
    assert await client.privmsg("#room", "x" * 1000) == 3
    await eventually(lambda: len(irc_server.lines("PRIVMSG")) == 3)
    assert [len(line) for line in irc_server.lines("PRIVMSG")] == [
        len("PRIVMSG #room :") + n for n in (450, 450, 100)
    ]
    await shutdown(client, task)


@pytest.mark.asyncio
async def test_multibyte_message_stays_within_line_limit(irc_server):
    client = make_client(irc_server)
    task = asyncio.create_task(client.run())
    await eventually(lambda: _has_room(client))
    count = await client.privmsg("#room", "😀" * 450)
    await eventually(lambda: len(irc_server.lines("PRIVMSG")) == count)
    lines = irc_server.lines("PRIVMSG")
    assert all(len(f"{line}\r\n".encode()) <= 512 for line in lines)
    assert "".join(line.split(" :", 1)[1] for line in lines) == "😀" * 450
    await shutdown(client, task)


@pytest.mark.asyncio
async def test_whois_round_trip(irc_server):
    client = make_client(irc_server)
    task = asyncio.create_task(client.run())
    await eventually(lambda: _has_room(client))
    entries = await client.whois("alice", timeout=2)
    assert entries[0]["type"] == "user"
    assert client.store.get_user("alice").real_name == "Alice"
    await shutdown(client, task)


@pytest.mark.asyncio
async def test_submit_threadsafe_from_worker_thread(irc_server):
    client = make_client(irc_server)
    task = asyncio.create_task(client.run())
    await eventually(lambda: _has_room(client))

    def worker() -> int:
        future = client.submit_threadsafe(client.privmsg("#room", "from a thread"))
        return future.result(timeout=2)

    sent = await asyncio.get_running_loop().run_in_executor(None, worker)
    assert sent == 1
    await eventually(lambda: "PRIVMSG #room :from a thread" in irc_server.received)
    await shutdown(client, task)


@pytest.mark.asyncio
async def test_send_raw_rejects_line_breaks():
    client = AsyncIRCClient(BotConfig())
    with pytest.raises(ValueError):
        await client.send_raw("PRIVMSG #x :a\r\nQUIT")
    with pytest.raises(ValueError):
        await client.send_raw("   ")


@pytest.mark.asyncio
async def test_commands_without_connection_raise_network_error():
    client = AsyncIRCClient(BotConfig())
    with pytest.raises(NetworkError):
        await client.privmsg("#room", "hello")


@pytest.mark.asyncio
async def test_join_rejects_bad_channel():
    client = AsyncIRCClient(BotConfig())
    with pytest.raises(ValueError):
        await client.join("")
    with pytest.raises(ValueError):
        await client.join("#two words")


def test_submit_threadsafe_without_loop_raises():
    client = AsyncIRCClient(BotConfig())

    async def noop():
        return None

    with pytest.raises(NetworkError):
        client.submit_threadsafe(noop())
