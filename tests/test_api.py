import pytest

from trivia_server.errors import TriviaAPIError
from trivia_server.routers.quiz import get_trivia_client
from trivia_server.schemas import TriviaQuestion

PASSWORD = "correct-horse"


def test_register_and_login(client, register_user):
    user = register_user("alice", display_name="Alice A")

    assert user["username"] == "alice"
    assert user["displayName"] == "Alice A"
    assert user["avatar"] == "👤"
    assert user["totalScore"] == 0
    assert "passwordHash" not in user

    res = client.post("/api/auth/login", json={"username": "alice", "password": PASSWORD})
    assert res.status_code == 200
    assert res.json()["user"]["id"] == user["id"]


def test_register_duplicate_username(client, register_user):
    register_user("alice")
    res = client.post(
        "/api/auth/register",
        json={"username": "alice", "password": "another-pass", "displayName": "Imposter"},
    )
    assert res.status_code == 400
    assert res.json()["detail"] == "Username already exists"


def test_register_validates_body(client):
    res = client.post("/api/auth/register", json={"username": "bob", "password": "short", "displayName": "Bob"})
    assert res.status_code == 422


def test_login_rejects_bad_password(client, register_user):
    register_user("alice")
    res = client.post("/api/auth/login", json={"username": "alice", "password": "wrong-password"})
    assert res.status_code == 401


def test_profile_is_private(client, register_user):
    alice = register_user("alice")
    bob = register_user("bob")

    assert client.get(f"/api/users/{alice['id']}", auth=("alice", PASSWORD)).status_code == 200
    assert client.get(f"/api/users/{bob['id']}", auth=("alice", PASSWORD)).status_code == 403
    res = client.get(f"/api/users/{alice['id']}")
    assert res.status_code == 401


def test_update_score(client, register_user):
    alice = register_user("alice")

    def change(points, solo=False):
        res = client.post(
            "/api/users/update-score",
            json={"userId": alice["id"], "pointsChange": points, "isSoloMode": solo},
            auth=("alice", PASSWORD),
        )
        assert res.status_code == 200, res.text
        return res.json()

    assert change(30) == {"success": True, "newScore": 30}
    assert change(-50)["newScore"] == 0
    assert change(20, solo=True)["newScore"] == 20
    assert change(-10, solo=True)["newScore"] == 20

    profile = client.get(f"/api/users/{alice['id']}", auth=("alice", PASSWORD)).json()
    assert profile["totalScore"] == 20


def test_update_score_for_someone_else_is_forbidden(client, register_user):
    register_user("alice")
    bob = register_user("bob")
    res = client.post(
        "/api/users/update-score",
        json={"userId": bob["id"], "pointsChange": 500},
        auth=("alice", PASSWORD),
    )
    assert res.status_code == 403


def test_solo_save_and_leaderboard(client, register_user):
    alice = register_user("alice")
    bob = register_user("bob")

    for name, user, score in (("alice", alice, 40), ("bob", bob, 90), ("alice", alice, 70)):
        res = client.post(
            "/api/solo/save",
            json={
                "userId": user["id"],
                "score": score,
                "correctAnswers": score // 10,
                "totalQuestions": 10,
                "difficulty": "medium",
            },
            auth=(name, PASSWORD),
        )
        assert res.status_code == 200, res.text
        assert res.json()["success"] is True

    board = client.get("/api/leaderboard/solo").json()
    assert [(e["username"], e["score"]) for e in board] == [("bob", 90), ("alice", 70)]
    assert board[0]["category"] == "Mixed"
    assert board[0]["averageTime"] == 0

    assert [e["username"] for e in client.get("/api/leaderboard/solo", params={"limit": 1, "offset": 1}).json()] == [
        "alice"
    ]
    assert client.get("/api/leaderboard/solo", params={"limit": 0}).status_code == 422


def test_solo_save_for_someone_else_is_forbidden(client, register_user):
    register_user("alice")
    bob = register_user("bob")
    res = client.post(
        "/api/solo/save",
        json={"userId": bob["id"], "score": 10, "correctAnswers": 1, "totalQuestions": 10},
        auth=("alice", PASSWORD),
    )
    assert res.status_code == 403


def test_rooms_endpoints(client, register_user):
    alice = register_user("alice")

    assert client.get("/api/rooms").status_code == 401
    assert client.get("/api/rooms", auth=("alice", PASSWORD)).json() == []

    with client.websocket_connect("/ws") as ws:
        ws.send_json({"type": "join_lobby", "userId": alice["id"]})
        ws.receive_json()
        ws.send_json({"type": "create_room", "userId": alice["id"], "roomName": "Movie Buffs", "maxPlayers": 3})
        room = ws.receive_json()["room"]

        [listed] = client.get("/api/rooms", auth=("alice", PASSWORD)).json()
        assert listed["id"] == room["id"]
        assert listed["name"] == "Movie Buffs"

        detail = client.get(f"/api/rooms/{room['id']}", auth=("alice", PASSWORD)).json()
        assert detail["room"]["currentPlayers"] == 1
        assert [p["userId"] for p in detail["participants"]] == [alice["id"]]

    assert client.get("/api/rooms/nope", auth=("alice", PASSWORD)).status_code == 404


class StubTrivia:
    def __init__(self, questions=None, error=None):
        self.questions = questions or []
        self.error = error
        self.configs = []

    async def fetch_questions(self, config):
        self.configs.append(config)
        if self.error:
            raise self.error
        return self.questions


@pytest.fixture
def stub_trivia(app):
    def _install(**kwargs):
        stub = StubTrivia(**kwargs)
        app.dependency_overrides[get_trivia_client] = lambda: stub
        return stub

    yield _install
    app.dependency_overrides.clear()


def test_questions_endpoint(client, stub_trivia):
    question = TriviaQuestion(
        category="Science",
        type="multiple",
        difficulty="easy",
        question="What is H2O?",
        correct_answer="Water",
        incorrect_answers=["Salt", "Sand", "Air"],
    )
    stub = stub_trivia(questions=[question])

    res = client.get("/api/questions", params={"amount": 1, "category": 17, "difficulty": "easy"})

    assert res.status_code == 200
    assert res.json()[0]["correct_answer"] == "Water"
    assert (stub.configs[0].amount, stub.configs[0].category, stub.configs[0].difficulty) == (1, 17, "easy")


def test_questions_endpoint_validates_query(client, stub_trivia):
    stub_trivia()
    assert client.get("/api/questions", params={"amount": 51}).status_code == 422
    assert client.get("/api/questions", params={"difficulty": "extreme"}).status_code == 422


def test_questions_upstream_failure_is_502(client, stub_trivia):
    stub_trivia(error=TriviaAPIError("Trivia service unavailable"))
    res = client.get("/api/questions")
    assert res.status_code == 502
    assert res.json()["detail"] == "Trivia service unavailable"
