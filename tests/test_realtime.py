import asyncio

from app.services.realtime import WebSocketClient

API = "/api/v1"


def _create_org(client, headers, slug="acme"):
    return client.post(f"{API}/organizations", json={"name": slug.title(), "slug": slug}, headers=headers).json()


def test_join_ack_then_live_events(client, user_headers):
    org = _create_org(client, user_headers)

    with client.websocket_connect("/ws/events") as ws:
        ws.send_json({"action": "join", "organizationId": org["id"]})
        assert ws.receive_json() == {"event": "room:joined", "data": {"organizationId": org["id"]}}

        service = client.post(
            f"{API}/organizations/{org['id']}/services", json={"name": "API"}, headers=user_headers
        ).json()
        client.post(
            f"{API}/organizations/{org['id']}/services/{service['id']}/status",
            json={"status": "degraded"},
            headers=user_headers,
        )

        frame = ws.receive_json()
        assert frame["event"] == "service:status:change"
        assert frame["data"]["serviceId"] == service["id"]
        assert frame["data"]["status"] == "degraded"


def test_leave_ack_and_disconnect_cleanup(client, user_headers):
    org = _create_org(client, user_headers)
    broadcaster = client.app.state.broadcaster

    with client.websocket_connect("/ws/events") as ws:
        ws.send_json({"action": "join", "organizationId": org["id"]})
        ws.receive_json()
        assert org["id"] in broadcaster.rooms()

        ws.send_json({"action": "leave", "organizationId": org["id"]})
        assert ws.receive_json() == {"event": "room:left", "data": {"organizationId": org["id"]}}
        assert broadcaster.rooms() == []

        ws.send_json({"action": "join", "organizationId": org["id"]})
        ws.receive_json()

    assert broadcaster.rooms() == []


def test_malformed_messages_are_answered_not_fatal(client):
    with client.websocket_connect("/ws/events") as ws:
        ws.send_text("not json")
        assert ws.receive_json()["event"] == "error"

        ws.send_json({"action": "dance", "organizationId": "x"})
        assert ws.receive_json()["event"] == "error"

        ws.send_json({"action": "join", "organizationId": "org-1"})
        assert ws.receive_json()["event"] == "room:joined"


class _FakeSocket:
    def __init__(self):
        self.sent = []

    async def send_json(self, data):
        self.sent.append(data)


def test_full_send_buffer_drops_new_frames():
    async def scenario():
        socket = _FakeSocket()
        handle = WebSocketClient(socket, queue_size=2)
        for index in range(4):
            handle.send("incident:update", {"n": index})
        # let the queued call_soon_threadsafe callbacks run
        await asyncio.sleep(0)

        pump = asyncio.create_task(handle.pump())
        await asyncio.sleep(0.01)
        pump.cancel()
        return socket.sent

    sent = asyncio.run(scenario())

    assert [frame["data"]["n"] for frame in sent] == [0, 1]
    assert all(frame["event"] == "incident:update" for frame in sent)


def test_close_waits_for_the_send_loop_to_stop():
    async def scenario():
        handle = WebSocketClient(_FakeSocket())
        task = handle.start()
        await asyncio.sleep(0)

        await handle.close()
        return task

    task = asyncio.run(scenario())

    assert task.done()
    assert task.cancelled()
