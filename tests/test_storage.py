import asyncio
import json

import pytest

from trivia_server.errors import (
    AlreadyParticipant,
    RepositoryError,
    RoomFull,
    RoomNotFound,
    RoomNotJoinable,
    UsernameTaken,
)
from trivia_server.storage import JsonRepository

pytestmark = pytest.mark.anyio


async def test_create_room_adds_host_as_participant(repository):
    room = await repository.create_room("Friday", host_id="u1", max_players=4)

    assert room.current_players == 1
    assert room.status == "waiting"
    [host] = await repository.list_participants(room.id)
    assert host.user_id == "u1"
    assert host.score == 0 and host.is_ready is False


async def test_add_participant_checks_preconditions(repository):
    room = await repository.create_room("Duo", host_id="u1", max_players=2)

    with pytest.raises(AlreadyParticipant):
        await repository.add_participant(room.id, "u1")
    await repository.add_participant(room.id, "u2")
    with pytest.raises(RoomFull):
        await repository.add_participant(room.id, "u3")
    with pytest.raises(RoomNotFound):
        await repository.add_participant("missing", "u3")

    await repository.update_room_status(room.id, "finished")
    await repository.remove_participant(room.id, "u2")
    with pytest.raises(RoomNotJoinable):
        await repository.add_participant(room.id, "u3")

    assert (await repository.get_room(room.id)).current_players == 1


async def test_remove_participant_is_floored_and_idempotent(repository):
    room = await repository.create_room("Solo", host_id="u1", max_players=2)

    assert await repository.remove_participant(room.id, "u1") is True
    assert await repository.remove_participant(room.id, "u1") is False
    assert await repository.remove_participant(room.id, "nobody") is False
    assert (await repository.get_room(room.id)).current_players == 0


async def test_returned_records_are_copies(repository):
    room = await repository.create_room("Copy", host_id="u1", max_players=4)
    room.current_players = 99

    assert (await repository.get_room(room.id)).current_players == 1


async def test_waiting_rooms_newest_first(repository):
    ids = [(await repository.create_room(f"R{i}", host_id=f"u{i}", max_players=4)).id for i in range(4)]
    await repository.update_room_status(ids[2], "playing")

    listed = [r.id for r in await repository.list_waiting_rooms()]

    assert listed == [ids[3], ids[1], ids[0]]


async def test_unknown_status_is_rejected(repository):
    room = await repository.create_room("R", host_id="u1", max_players=4)
    with pytest.raises(ValueError):
        await repository.update_room_status(room.id, "paused")


async def test_duplicate_username(repository):
    await repository.create_user("ann", "hash", "Ann")
    with pytest.raises(UsernameTaken):
        await repository.create_user("ann", "hash2", "Ann Again")


async def test_change_user_score(repository):
    user = await repository.create_user("ann", "hash", "Ann")

    assert (await repository.change_user_score(user.id, 42)).total_score == 42
    assert (await repository.change_user_score(user.id, -100)).total_score == 0
    assert (await repository.change_user_score(user.id, 15, solo=True)).total_score == 15
    assert (await repository.change_user_score(user.id, -5, solo=True)).total_score == 15
    assert await repository.change_user_score("missing", 1) is None


async def test_concurrent_score_changes_are_not_lost(tmp_path):
    repository = JsonRepository(tmp_path / "trivia.json")
    user = await repository.create_user("ann", "hash", "Ann")

    await asyncio.gather(*(repository.change_user_score(user.id, 1) for _ in range(25)))

    assert (await repository.get_user(user.id)).total_score == 25


async def test_data_survives_reload(tmp_path):
    path = tmp_path / "nested" / "trivia.json"
    repository = JsonRepository(path)
    await repository.load()
    user = await repository.create_user("ann", "hash", "Ann", avatar="🦊")
    room = await repository.create_room("Persisted", host_id=user.id, max_players=6, config={"amount": 10})
    await repository.add_solo_result(user.id, score=70, correct_answers=7, total_questions=10, difficulty="easy")

    on_disk = json.loads(path.read_text(encoding="utf-8"))
    assert on_disk["rooms"][room.id]["maxPlayers"] == 6
    assert on_disk["users"][user.id]["displayName"] == "Ann"

    reopened = JsonRepository(path)
    await reopened.load()
    assert (await reopened.get_user_by_username("ann")).avatar == "🦊"
    restored = await reopened.get_room(room.id)
    assert restored.config == {"amount": 10}
    assert restored.current_players == 1
    [entry] = await reopened.solo_leaderboard()
    assert entry.score == 70


async def test_missing_file_means_empty_store(tmp_path):
    repository = JsonRepository(tmp_path / "absent.json")
    await repository.load()
    assert await repository.list_waiting_rooms() == []


async def test_corrupt_file_raises(tmp_path):
    path = tmp_path / "trivia.json"
    path.write_text("{not json", encoding="utf-8")

    with pytest.raises(RepositoryError):
        await JsonRepository(path).load()


class BrokenDiskRepository(JsonRepository):
    async def _flush(self):
        raise OSError("read-only file system")


async def test_failed_write_rolls_back():
    repository = BrokenDiskRepository()

    with pytest.raises(RepositoryError):
        await repository.create_room("Lost", host_id="u1", max_players=4)

    assert await repository.list_waiting_rooms() == []
    assert repository._data.participants == {}


async def test_failed_precondition_rolls_back(repository):
    room = await repository.create_room("Full", host_id="u1", max_players=2)
    await repository.add_participant(room.id, "u2")

    with pytest.raises(RoomFull):
        await repository.add_participant(room.id, "u3")

    assert [p.user_id for p in await repository.list_participants(room.id)] == ["u1", "u2"]
