"""Test the HTTP API end to end."""


async def create_room(client, **body):
    response = await client.post(
        "/api/party/rooms", json={"hostId": "alice", "hostName": "Alice", **body}
    )
    assert response.status_code == 201
    return response.json()


async def test_health(client):
    response = await client.get("/api/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok", "version": "1.0.0", "storage": "memory"}


async def test_root(client):
    response = await client.get("/")

    assert response.status_code == 200
    assert response.json()["health"] == "/api/health"


async def test_create_and_get_room(client):
    room = await create_room(client, maxRounds=2)

    assert room["gameState"] == "lobby"
    assert room["dennerId"] == "alice"
    assert room["maxRounds"] == 2
    assert room["playerCount"] == 1

    response = await client.get(f"/api/party/rooms/{room['roomId'].lower()}")
    assert response.status_code == 200
    assert response.json()["roomId"] == room["roomId"]


async def test_missing_room_is_404(client):
    response = await client.get("/api/party/rooms/NOPE00")

    assert response.status_code == 404
    body = response.json()
    assert body["code"] == "NOT_FOUND"
    assert body["context"] == {"room_id": "NOPE00"}


async def test_invalid_body_is_400(client):
    response = await client.post("/api/party/rooms", json={"hostId": "", "hostName": "Alice"})

    assert response.status_code == 400
    assert response.json()["code"] == "VALIDATION"


async def test_room_full_is_400(client):
    room = await create_room(client, maxPlayers=1)

    response = await client.post(
        f"/api/party/rooms/{room['roomId']}/players",
        json={"playerId": "bob", "playerName": "Bob"},
    )

    assert response.status_code == 400
    assert response.json()["code"] == "CAPACITY_EXCEEDED"


async def test_invalid_transition_is_409(client):
    room = await create_room(client)

    response = await client.post(f"/api/party/rooms/{room['roomId']}/continue")

    assert response.status_code == 409
    assert response.json()["code"] == "INVALID_STATE"


async def test_session_flow(client):
    room = await create_room(client, maxRounds=1, maxPlayers=2)
    base = f"/api/party/rooms/{room['roomId']}"

    response = await client.post(
        f"{base}/players", json={"playerId": "bob", "playerName": "Bob"}
    )
    assert response.status_code == 200
    assert response.json()["playerCount"] == 2

    response = await client.post(f"{base}/game-type", json={"gameType": "findColor"})
    assert response.json()["gameState"] == "gameSelection"

    response = await client.put(f"{base}/target-color", json={"targetColor": "#336699"})
    assert response.json()["targetColor"] == "#336699"

    response = await client.post(f"{base}/rounds")
    assert response.status_code == 201
    assert response.json()["gameState"] == "playing"

    response = await client.post(f"{base}/extend-time", json={"seconds": 10})
    assert response.json()["currentGuessTime"] == 40

    for player_id, name, score in [("alice", "Alice", 88), ("bob", "Bob", 64)]:
        response = await client.post(f"{base}/scores", json={
            "playerId": player_id,
            "playerName": name,
            "score": score,
            "timeTaken": 7.5,
            "capturedColor": "#336698",
            "similarity": 97.5,
        })
        assert response.status_code == 201

    response = await client.post(f"{base}/rounds/current/end")
    info = response.json()
    assert info["gameState"] == "sessionFinished"
    assert info["roundResults"][0]["players"][0] == {
        "id": "alice",
        "name": "Alice",
        "score": 88,
        "attempts": 1,
    }

    response = await client.get(f"{base}/leaderboard")
    leaderboard = response.json()
    assert [e["playerId"] for e in leaderboard] == ["alice", "bob"]
    assert leaderboard[0]["averageTimeTaken"] == 7.5

    response = await client.get(f"{base}/rounds")
    rounds = response.json()
    assert len(rounds) == 1
    assert rounds[0]["gameType"] == "findColor"
    assert rounds[0]["targetColor"] == "#336699"

    response = await client.get(f"{base}/scores", params={"roundId": rounds[0]["id"]})
    assert [s["score"] for s in response.json()] == [88, 64]

    response = await client.get(f"{base}/rounds/1")
    assert response.json()["isCompleted"] is True

    response = await client.get(f"{base}/rounds/2")
    assert response.status_code == 404


async def test_list_and_update_players(client):
    room = await create_room(client)
    base = f"/api/party/rooms/{room['roomId']}"

    response = await client.patch(f"{base}/players/alice", json={"playerName": "Ally"})
    assert response.status_code == 200
    assert response.json()["playerName"] == "Ally"

    response = await client.get(f"{base}/players")
    assert [p["playerName"] for p in response.json()] == ["Ally"]


async def test_update_room(client):
    room = await create_room(client)

    response = await client.patch(
        f"/api/party/rooms/{room['roomId']}", json={"guessTime": 45, "maxRounds": 4}
    )

    assert response.status_code == 200
    assert response.json()["guessTime"] == 45
    assert response.json()["maxRounds"] == 4


async def test_update_room_max_rounds_below_current_round_is_400(client):
    room = await create_room(client, maxRounds=3)
    base = f"/api/party/rooms/{room['roomId']}"
    await client.post(f"{base}/rounds")
    await client.post(f"{base}/rounds/current/end")
    await client.post(f"{base}/continue")
    await client.post(f"{base}/rounds")

    response = await client.patch(base, json={"maxRounds": 1})

    assert response.status_code == 400
    assert response.json()["code"] == "VALIDATION"
    info = (await client.get(base)).json()
    assert (info["currentRound"], info["maxRounds"]) == (2, 3)


async def test_update_room_cannot_patch_game_state(client):
    room = await create_room(client)
    base = f"/api/party/rooms/{room['roomId']}"
    await client.post(f"{base}/end")

    response = await client.patch(base, json={"gameState": "lobby"})

    assert response.status_code == 400
    assert response.json()["code"] == "VALIDATION"
    assert (await client.get(base)).json()["gameState"] == "sessionFinished"


async def test_update_room_host_stays_in_rotation(client):
    room = await create_room(client)
    base = f"/api/party/rooms/{room['roomId']}"

    response = await client.patch(base, json={"hostId": "mallory", "hostName": "Mallory"})

    assert response.status_code == 200
    info = response.json()
    assert info["dennerId"] == "mallory"
    assert info["dennerRotation"] == ["mallory", "alice"]


async def test_leave_room(client):
    room = await create_room(client)
    base = f"/api/party/rooms/{room['roomId']}"
    await client.post(f"{base}/players", json={"playerId": "bob", "playerName": "Bob"})

    response = await client.delete(f"{base}/players/alice")
    body = response.json()
    assert body["roomClosed"] is False
    assert body["gameInfo"]["dennerId"] == "bob"

    response = await client.delete(f"{base}/players/alice")
    assert response.status_code == 404

    response = await client.delete(f"{base}/players/bob")
    assert response.json() == {"roomClosed": True, "gameInfo": None}

    response = await client.get(base)
    assert response.status_code == 404


async def test_close_room(client):
    room = await create_room(client)

    response = await client.delete(f"/api/party/rooms/{room['roomId']}")
    assert response.status_code == 204

    response = await client.delete(f"/api/party/rooms/{room['roomId']}")
    assert response.status_code == 404


async def test_admin_requires_password(client):
    response = await client.post("/api/admin/cleanup")
    assert response.status_code == 401

    response = await client.get("/api/admin/cleanup", headers={"password": "wrong"})
    assert response.status_code == 401


async def test_admin_cleanup(client, admin_headers):
    await create_room(client)

    response = await client.get("/api/admin/cleanup", headers=admin_headers)
    assert response.status_code == 200
    assert response.json() == {"rooms": 0, "players": 0, "dryRun": True}

    response = await client.post(
        "/api/admin/cleanup", headers=admin_headers, json={"roomHours": 1, "playerHours": 1}
    )
    assert response.status_code == 200
    assert response.json()["dryRun"] is False


async def test_admin_export(client, admin_headers):
    room = await create_room(client)
    base = f"/api/party/rooms/{room['roomId']}"
    await client.post(f"{base}/rounds")
    await client.post(f"{base}/scores", json={
        "playerId": "alice", "playerName": "Alice", "score": 77, "timeTaken": 3.0,
    })

    response = await client.get(
        "/api/admin/export-leaderboard",
        headers=admin_headers,
        params={"roomId": room["roomId"].lower()},
    )

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/csv")
    lines = response.text.splitlines()
    assert lines[0].startswith("rank,playerId,playerName")
    assert lines[1] == "1,alice,Alice,77.0,77,1,77,3.0"
