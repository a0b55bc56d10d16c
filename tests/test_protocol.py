import json

import pytest

from trivia_server import protocol
from trivia_server.errors import ProtocolError


def parse(**payload):
    return protocol.parse_client_message(json.dumps(payload))


def test_parses_each_message_type():
    assert isinstance(parse(type="join_lobby", userId="u1"), protocol.JoinLobby)
    assert isinstance(parse(type="create_room", userId="u1"), protocol.CreateRoom)
    assert isinstance(parse(type="join_room", userId="u1", roomId="r1"), protocol.JoinRoom)
    assert isinstance(parse(type="leave_room", userId="u1"), protocol.LeaveRoom)
    assert isinstance(parse(type="get_rooms"), protocol.GetRooms)


def test_create_room_defaults():
    message = parse(type="create_room", userId="u1")
    assert message.room_name == "Room"
    assert message.max_players == 8
    assert message.config is None


def test_create_room_passes_config_through_untouched():
    config = {"amount": 10, "category": 9, "difficulty": "hard", "extra": [1, 2]}
    message = parse(type="create_room", userId="u1", config=config)
    assert message.config == config


@pytest.mark.parametrize(
    "raw, expected",
    [
        (4, 4),
        ("6", 6),
        (1, 2),
        (-3, 2),
        (99, 16),
        (0, 8),
        (None, 8),
        ("lots", 8),
        (True, 8),
        (7.9, 7),
        (0.5, 2),
        (10**400, 16),
        (-(10**400), 2),
        ("1" + "0" * 400, 16),
        ("nan", 8),
    ],
)
def test_max_players_is_clamped(raw, expected):
    assert parse(type="create_room", userId="u1", maxPlayers=raw).max_players == expected


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("  Trivia Night  ", "Trivia Night"),
        ("", "Room"),
        ("    ", "Room"),
        (42, "Room"),
        ("x" * 200, "x" * 80),
    ],
)
def test_room_name_is_trimmed_capped_and_defaulted(raw, expected):
    assert parse(type="create_room", userId="u1", roomName=raw).room_name == expected


def test_leave_room_ignores_payload_room_id():
    message = parse(type="leave_room", userId="u1", roomId="someone-elses-room")
    assert not hasattr(message, "room_id")


@pytest.mark.parametrize(
    "raw, message",
    [
        ("not json", "Invalid message format"),
        ("[1, 2]", "Invalid message format"),
        ('"join_lobby"', "Invalid message format"),
        ("{}", "Invalid message type"),
        ('{"type": 5}', "Invalid message type"),
        ('{"type": "start_game"}', "Unknown message type: start_game"),
        ('{"type": "join_lobby"}', "Missing userId"),
        ('{"type": "join_lobby", "userId": ""}', "Invalid userId"),
        ('{"type": "join_lobby", "userId": "   "}', "Invalid userId"),
        ('{"type": "join_lobby", "userId": 17}', "Invalid userId"),
        ('{"type": "join_room", "userId": "u1"}', "Missing roomId"),
        ('{"type": "create_room"}', "Missing userId"),
        ("[" * 100_000 + "]" * 100_000, "Invalid message format"),
        ('{"type": "join_lobby", "userId": "u1", "x": ' + "[" * 50_000 + "]" * 50_000 + "}", "Invalid message format"),
    ],
)
def test_malformed_frames_raise_protocol_error(raw, message):
    with pytest.raises(ProtocolError) as excinfo:
        protocol.parse_client_message(raw)
    assert excinfo.value.message == message


def test_accepts_utf8_bytes():
    message = protocol.parse_client_message('{"type": "join_lobby", "userId": "zoë"}'.encode())
    assert message.user_id == "zoë"


def test_invalid_utf8_is_a_format_error():
    with pytest.raises(ProtocolError):
        protocol.parse_client_message(b"\xff\xfe{")


def test_outbound_shapes():
    assert protocol.lobby_joined("u1") == {"type": "lobby_joined", "userId": "u1"}
    assert protocol.room_left() == {"type": "room_left"}
    assert protocol.player_joined("u2") == {"type": "player_joined", "userId": "u2"}
    assert protocol.player_left("u2") == {"type": "player_left", "userId": "u2"}
    assert protocol.room_list_updated() == {"type": "room_list_updated"}
    assert protocol.error("nope") == {"type": "error", "message": "nope"}
    assert protocol.rooms_list([]) == {"type": "rooms_list", "rooms": []}


def test_huge_integer_capacity_from_raw_frame_is_clamped():
    raw = '{"type": "create_room", "userId": "u1", "maxPlayers": 1' + "0" * 400 + "}"
    assert protocol.parse_client_message(raw).max_players == 16


def test_deeply_nested_config_is_rejected():
    config = {}
    for _ in range(20):
        config = {"inner": config}

    with pytest.raises(ProtocolError) as excinfo:
        parse(type="create_room", userId="u1", config=config)
    assert excinfo.value.message == "Invalid config"


def test_moderately_nested_config_is_kept():
    config = {"amount": 10, "rounds": [{"category": 9, "tags": ["a", "b"]}]}
    assert parse(type="create_room", userId="u1", config=config).config == config
