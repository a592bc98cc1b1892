import threading

from app.services.broadcaster import Broadcaster
from app.services.events import EventType

from conftest import FailingHandle, RecordingHandle


def test_joined_handle_receives_publish(broadcaster, recorder):
    broadcaster.join("org-a", recorder)

    delivered = broadcaster.publish("org-a", EventType.INCIDENT_CREATE, {"incidentId": "i1"})

    assert delivered == 1
    assert recorder.events == [("incident:create", {"incidentId": "i1"})]


def test_other_rooms_do_not_receive(broadcaster):
    in_a, in_b = RecordingHandle(), RecordingHandle()
    broadcaster.join("org-a", in_a)
    broadcaster.join("org-b", in_b)

    broadcaster.publish("org-a", "service:status:change", {"serviceId": "s1"})

    assert len(in_a.events) == 1
    assert in_b.events == []


def test_leave_stops_delivery_and_drops_empty_room(broadcaster, recorder):
    broadcaster.join("org-a", recorder)
    broadcaster.leave("org-a", recorder)

    broadcaster.publish("org-a", EventType.INCIDENT_UPDATE, {})

    assert recorder.events == []
    assert "org-a" not in broadcaster.rooms()


def test_join_and_leave_are_idempotent(broadcaster, recorder):
    broadcaster.join("org-a", recorder)
    broadcaster.join("org-a", recorder)
    assert broadcaster.publish("org-a", EventType.INCIDENT_UPDATE, {}) == 1

    broadcaster.leave("org-a", recorder)
    broadcaster.leave("org-a", recorder)
    assert broadcaster.rooms() == []


def test_late_joiner_misses_earlier_events(broadcaster, recorder):
    broadcaster.publish("org-a", EventType.INCIDENT_CREATE, {"incidentId": "i1"})
    broadcaster.join("org-a", recorder)
    broadcaster.publish("org-a", EventType.INCIDENT_UPDATE, {"incidentId": "i1"})

    assert recorder.names() == ["incident:update"]


def test_disconnect_removes_handle_everywhere(broadcaster, recorder):
    keeper = RecordingHandle()
    broadcaster.join("org-a", recorder)
    broadcaster.join("org-b", recorder)
    broadcaster.join("org-b", keeper)

    left = broadcaster.disconnect(recorder)

    assert sorted(left) == ["org-a", "org-b"]
    assert broadcaster.rooms() == ["org-b"]
    assert broadcaster.members("org-b") == {keeper}


def test_failing_handle_does_not_stop_the_batch(broadcaster, recorder):
    broadcaster.join("org-a", FailingHandle())
    broadcaster.join("org-a", recorder)

    delivered = broadcaster.publish("org-a", EventType.COMMENT_CREATE, {"commentId": "c1"})

    assert delivered == 1
    assert recorder.names() == ["comment:create"]


def test_events_arrive_in_publish_order(broadcaster, recorder):
    broadcaster.join("org-a", recorder)
    for index in range(5):
        broadcaster.publish("org-a", EventType.SERVICE_STATUS_CHANGE, {"n": index})

    assert [payload["n"] for _, payload in recorder.events] == [0, 1, 2, 3, 4]


def test_closed_broadcaster_drops_events(recorder):
    broadcaster = Broadcaster()
    broadcaster.join("org-a", recorder)
    broadcaster.close()

    assert broadcaster.closed
    assert broadcaster.publish("org-a", EventType.INCIDENT_CREATE, {}) == 0
    assert recorder.events == []


def test_empty_organization_id_is_ignored(broadcaster, recorder):
    broadcaster.join("", recorder)
    assert broadcaster.rooms() == []


def test_concurrent_joins_are_not_lost(broadcaster):
    handles = [RecordingHandle() for _ in range(50)]
    threads = [threading.Thread(target=broadcaster.join, args=("org-a", handle)) for handle in handles]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert len(broadcaster.members("org-a")) == 50
