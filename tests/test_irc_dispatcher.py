import asyncio

import pytest

from hanna_irc.config import BotConfig
from hanna_irc.irc.client import AsyncIRCClient
from hanna_irc.irc.connection import ConnectionState
from hanna_irc.irc.dispatcher import IRCDispatcher
from hanna_irc.irc.events import TriggerEvent


class DummyIRC(AsyncIRCClient):
    def __init__(self, **config) -> None:  # keep base init
        super().__init__(BotConfig(**config))
        self.sent: list[str] = []
        self.events: list[TriggerEvent] = []
        self.set_event_handler(self.events.append)

    async def _send_line(self, message: str) -> None:  # capture instead of network
        self.sent.append(message)

    def mark_registered(self) -> None:
        self.connection_controller.state = ConnectionState.CONNECTED


async def feed(client: DummyIRC, *lines: str) -> str:
    data = "".join(f"{line}\r\n" for line in lines)
    return await client.dispatcher.process_incoming_data("", data)


def _joined_client() -> DummyIRC:
    client = DummyIRC()
    client.mark_registered()
    return client


@pytest.mark.asyncio
async def test_ping_pong_response():
    client = DummyIRC()
    disp = IRCDispatcher(client)
    buf = await disp.process_incoming_data("", "PING :irc.example.net\r\n")
    assert buf == ""
    assert "PONG :irc.example.net" in client.sent
    assert client.last_ping_from_server > 0


@pytest.mark.asyncio
async def test_partial_line_is_buffered():
    client = DummyIRC()
    buf = await client.dispatcher.process_incoming_data("", "PING :one\r\nPING :tw")
    assert buf == "PING :tw"
    buf = await client.dispatcher.process_incoming_data(buf, "o\n")
    assert buf == ""
    assert client.sent == ["PONG :one", "PONG :two"]


@pytest.mark.asyncio
async def test_welcome_registers_sets_bot_mode_and_autojoins():
    client = DummyIRC(autojoin=["#one", "two"])
    client.connection_controller.state = ConnectionState.REGISTERING
    await feed(client, ":irc.example.net 001 Hanna_ :Welcome to the network")
    assert client.registered
    assert client.store.nick == "Hanna_"
    assert client.store.connected
    assert client.sent == ["MODE Hanna_ +B", "JOIN #one", "JOIN #two"]


@pytest.mark.asyncio
async def test_join_names_and_part_flow():
    client = _joined_client()
    await feed(
        client,
        ":Hanna!h@bot.host JOIN #room",
        ":irc.example.net 353 Hanna = #room :@Hanna +alice bob",
        ":irc.example.net 366 Hanna #room :End of /NAMES list.",
        ":carol!c@host JOIN #room",
    )
    snap = client.snapshot()
    assert snap.members("#room") == {"Hanna": "o", "alice": "v", "bob": None, "carol": None}
    assert [e.event_type for e in client.events] == ["join"]
    assert client.events[0].sender == "carol"

    await feed(client, ":bob!b@host PART #room :bye")
    assert "bob" not in client.snapshot().members("#room")
    part = client.events[-1]
    assert (part.event_type, part.message, part.full_message) == ("part", "bye", "bye")


@pytest.mark.asyncio
async def test_extended_join_records_account():
    client = _joined_client()
    await feed(client, ":dave!d@host JOIN #room daveacct :Dave Real")
    user = client.store.get_user("dave")
    assert (user.account, user.real_name) == ("daveacct", "Dave Real")


@pytest.mark.asyncio
async def test_privmsg_emits_message_and_mention():
    client = _joined_client()
    await feed(client, "@msgid=abc :alice!a@host PRIVMSG #room :hey Hanna, ping")
    assert [e.event_type for e in client.events] == ["privmsg", "mention"]
    mention = client.events[1].to_payload()
    assert mention["eventType"] == "mention"
    assert mention["sender"] == "alice"
    assert mention["target"] == "#room"
    assert mention["message"] == "hey Hanna, ping"
    assert mention["fullMessage"] == "hey Hanna, ping"
    assert mention["botNick"] == "Hanna"
    assert mention["messageTags"] == {"msgid": "abc"}


@pytest.mark.asyncio
async def test_privmsg_without_mention_or_from_self():
    client = _joined_client()
    await feed(
        client,
        ":alice!a@host PRIVMSG #room :look at /Hanna/ docs",
        ":Hanna!h@bot.host PRIVMSG #room :Hanna talking about Hanna",
    )
    assert [e.event_type for e in client.events] == ["privmsg", "privmsg"]
    assert "messageTags" not in client.events[0].to_payload()


@pytest.mark.asyncio
async def test_quit_removes_user_and_emits():
    client = _joined_client()
    await feed(
        client,
        ":Hanna!h@bot.host JOIN #room",
        ":alice!a@host JOIN #room",
        ":alice!a@host QUIT :Client Quit",
    )
    snap = client.snapshot()
    assert snap.user("alice") is None
    assert "alice" not in snap.members("#room")
    assert client.events[-1].event_type == "quit"
    assert client.events[-1].message == "Client Quit"


@pytest.mark.asyncio
async def test_nick_change_of_other_user_emits_event():
    client = _joined_client()
    await feed(
        client,
        ":Hanna!h@bot.host JOIN #room",
        ":alice!a@host JOIN #room",
        ":alice!a@host NICK :alicia",
    )
    assert "alicia" in client.snapshot().members("#room")
    event = client.events[-1]
    assert event.event_type == "nick"
    assert event.message == "alice is now known as alicia"
    assert event.full_message == "alicia"


@pytest.mark.asyncio
async def test_own_nick_change_updates_store_without_event():
    client = _joined_client()
    await feed(client, ":Hanna!h@bot.host NICK Hanna2")
    assert client.store.nick == "Hanna2"
    assert client.events == []


@pytest.mark.asyncio
async def test_kick_of_self_drops_channel():
    client = _joined_client()
    await feed(
        client,
        ":Hanna!h@bot.host JOIN #room",
        ":op!o@host KICK #room Hanna :behave",
    )
    assert client.store.get_channel("#room") is None
    assert client.events == []


@pytest.mark.asyncio
async def test_kick_of_other_emits_event():
    client = _joined_client()
    await feed(
        client,
        ":Hanna!h@bot.host JOIN #room",
        ":bob!b@host JOIN #room",
        ":op!o@host KICK #room bob :spam",
    )
    event = client.events[-1]
    assert (event.event_type, event.sender, event.message) == ("kick", "op", "op kicked bob: spam")
    assert "bob" not in client.snapshot().members("#room")


@pytest.mark.asyncio
async def test_mode_applies_member_flags_and_reports_unmatched():
    client = _joined_client()
    await feed(
        client,
        ":Hanna!h@bot.host JOIN #room",
        ":irc.example.net 353 Hanna = #room :n1 n2 +n3",
        ":irc.example.net 366 Hanna #room :End",
        ":op!o@host MODE #room +oo-v+h n1 n2 n3",
    )
    members = client.snapshot().members("#room")
    assert members["n1"] == "o"
    assert members["n2"] == "o"
    assert members["n3"] is None
    event = client.events[-1]
    assert event.event_type == "mode"
    assert event.message == "Mode #room +oo-v+h n1 n2 n3"


@pytest.mark.asyncio
async def test_user_mode_on_self():
    client = _joined_client()
    await feed(client, ":Hanna MODE Hanna :+iB")
    assert client.store.get_user("Hanna").modes == "Bi"


@pytest.mark.asyncio
async def test_topic_command_and_numerics():
    client = _joined_client()
    await feed(
        client,
        ":irc.example.net 332 Hanna #room :Old topic",
        ":irc.example.net 333 Hanna #room alice!a@host 1700000000",
    )
    chan = client.store.get_channel("#room")
    assert (chan.topic, chan.topic_set_by, chan.topic_set_time) == (
        "Old topic",
        "alice!a@host",
        1700000000,
    )
    await feed(client, ":bob!b@host TOPIC #room :New topic")
    assert client.store.get_channel("#room").topic == "New topic"
    assert client.events[-1].message == "Topic for #room set by bob: New topic"


@pytest.mark.asyncio
async def test_error_numerics_are_recorded_with_severity():
    client = _joined_client()
    await feed(
        client,
        ":irc.example.net 401 Hanna ghost :No such nick/channel",
        ":irc.example.net 482 Hanna #room :You're not channel operator",
    )
    errors = client.store.errors()
    assert [(e.code, e.target, e.severity) for e in errors] == [
        ("401", "ghost", "warning"),
        ("482", "#room", "error"),
    ]


@pytest.mark.asyncio
async def test_nick_in_use_during_registration_picks_alternate():
    client = DummyIRC()
    client.connection_controller.state = ConnectionState.REGISTERING
    await feed(client, ":irc.example.net 433 * Hanna :Nickname is already in use")
    assert client.sent == ["NICK Hanna_"]
    assert client.store.nick == "Hanna_"
    assert client.store.errors()[0].severity == "critical"


@pytest.mark.asyncio
async def test_erroneous_nick_falls_back_to_default():
    client = DummyIRC(nick="weird")
    client.connection_controller.state = ConnectionState.REGISTERING
    await feed(client, ":irc.example.net 432 * weird :Erroneous nickname")
    assert client.sent == ["NICK Hanna"]


@pytest.mark.asyncio
async def test_nick_in_use_after_registration_only_records():
    client = _joined_client()
    await feed(client, ":irc.example.net 433 Hanna taken :Nickname is already in use")
    assert client.sent == []
    assert client.store.nick == "Hanna"


@pytest.mark.asyncio
async def test_fatal_registration_numeric_fails_registration():
    client = DummyIRC()
    client.connection_controller.state = ConnectionState.REGISTERING
    await feed(client, ":irc.example.net 464 * :Password incorrect")
    failure = client.take_registration_failure()
    assert failure is not None
    assert failure.code == "464"
    assert client.take_registration_failure() is None


@pytest.mark.asyncio
async def test_server_error_command_after_registration_is_only_logged():
    client = _joined_client()
    await feed(client, "ERROR :Closing Link: flood")
    assert client.take_registration_failure() is None
    error = client.store.errors()[-1]
    assert (error.code, error.message, error.severity) == (
        "ERROR",
        "Closing Link: flood",
        "critical",
    )


@pytest.mark.asyncio
async def test_cap_end_sent_once_all_caps_answered():
    client = DummyIRC()
    client.dispatcher.begin_cap_negotiation(["message-tags", "server-time", "bogus"])
    await feed(client, ":irc.example.net CAP * ACK :message-tags server-time")
    assert client.sent == []
    await feed(client, ":irc.example.net CAP * NAK :bogus")
    assert client.sent == ["CAP END"]
    assert client.store.capabilities() == {"message-tags", "server-time"}
    await feed(client, ":irc.example.net CAP * DEL :server-time")
    assert client.store.capabilities() == {"message-tags"}
    assert client.sent == ["CAP END"]


@pytest.mark.asyncio
async def test_isupport_and_server_info():
    client = _joined_client()
    await feed(
        client,
        ":irc.example.net 004 Hanna irc.example.net ircd-1.0 iowB beIklmnt",
        ":irc.example.net 005 Hanna PREFIX=(qaohv)~&@%+ NETWORK=ExampleNet "
        "CHANTYPES=# :are supported by this server",
        ":irc.example.net 375 Hanna :- irc.example.net Message of the day -",
        ":irc.example.net 372 Hanna :- Be nice",
        ":irc.example.net 376 Hanna :End of /MOTD command.",
    )
    server = client.store.snapshot().server
    assert server.version == "ircd-1.0"
    assert server.network == "ExampleNet"
    assert server.isupport["CHANTYPES"] == "#"
    assert server.motd == ["Be nice"]
    assert client.store.rules.prefix_map["~"] == "q"


@pytest.mark.asyncio
async def test_unknown_numeric_is_recorded_as_stat():
    client = _joined_client()
    await feed(client, ":irc.example.net 042 Hanna ABC123 :your unique ID")
    stat = client.store.stats()[-1]
    assert stat.kind == "unknown_numeric"
    assert stat.data["group"] == "registration"


@pytest.mark.asyncio
async def test_stats_numeric_is_recorded():
    client = _joined_client()
    await feed(client, ":irc.example.net 242 Hanna :Server Up 3 days")
    assert client.store.stats()[-1].kind == "stats_242"


@pytest.mark.asyncio
async def test_whois_request_collects_replies():
    client = _joined_client()
    request = client.requests.create("whois", "alice")
    await feed(
        client,
        ":irc.example.net 311 Hanna Alice a host.example * :Alice Liddell",
        ":irc.example.net 312 Hanna Alice irc.example.net :Example server",
        ":irc.example.net 317 Hanna Alice 42 1700000000 :seconds idle, signon time",
        ":irc.example.net 318 Hanna Alice :End of /WHOIS list.",
    )
    entries = await client.requests.wait(request, timeout=1)
    assert [e["type"] for e in entries] == ["user", "server", "idle"]
    user = client.store.get_user("alice")
    assert (user.real_name, user.idle_seconds, user.signon_time) == ("Alice Liddell", 42, 1700000000)
    assert len(client.requests) == 0


@pytest.mark.asyncio
async def test_list_request_collects_channels():
    client = _joined_client()
    request = client.requests.create("list")
    await feed(
        client,
        ":irc.example.net 322 Hanna #python 1200 :Python talk",
        ":irc.example.net 322 Hanna #empty 0 :",
        ":irc.example.net 323 Hanna :End of /LIST",
    )
    entries = await asyncio.wait_for(request.future, 1)
    assert entries == [
        {"channel": "#python", "users": "1200", "topic": "Python talk"},
        {"channel": "#empty", "users": "0", "topic": ""},
    ]


@pytest.mark.asyncio
async def test_malformed_line_is_dropped():
    client = _joined_client()
    await feed(client, ":only.a.prefix", "PING :still-alive")
    assert client.sent == ["PONG :still-alive"]


@pytest.mark.asyncio
async def test_failing_handler_does_not_stop_dispatch():
    client = _joined_client()

    def boom(msg):
        raise RuntimeError("handler exploded")

    client.dispatcher._commands["TOPIC"] = boom  # noqa: SLF001
    await feed(client, ":a!b@c TOPIC #room :x", "PING :after")
    assert client.sent == ["PONG :after"]


@pytest.mark.asyncio
async def test_failing_event_handler_is_contained():
    client = _joined_client()

    async def bad_handler(event):
        raise ValueError("forwarder down")

    client.set_event_handler(bad_handler)
    await feed(client, ":alice!a@host PRIVMSG #room :hello", "PING :x")
    assert client.sent == ["PONG :x"]


@pytest.mark.asyncio
async def test_cap_new_requests_wanted_capabilities():
    client = DummyIRC(capabilities=["away-notify"])
    client.mark_registered()
    await feed(client, ":irc.example.net CAP Hanna NEW :away-notify batch")
    assert client.sent == ["CAP REQ :away-notify"]
    await feed(client, ":irc.example.net CAP Hanna ACK :away-notify")
    assert client.store.capabilities() == {"away-notify"}
    assert client.sent == ["CAP REQ :away-notify"]


@pytest.mark.asyncio
async def test_multibyte_character_split_across_reads_is_decoded():
    client = _joined_client()
    client.reader = asyncio.StreamReader()
    raw = ":bob!b@h PRIVMSG #c :café Hanna\r\n".encode()
    cut = raw.index(b"\xc3") + 1
    client.listener._initialize_listening()
    client.reader.feed_data(raw[:cut])
    assert await client.listener._handle_data_read() is None
    client.reader.feed_data(raw[cut:])
    assert await client.listener._handle_data_read() is None
    payloads = [e.to_payload() for e in client.events]
    assert [p["eventType"] for p in payloads] == ["privmsg", "mention"]
    assert payloads[0]["message"] == "café Hanna"
