# tests/test_protocol_router.py
import json

import pytest

from conftest import tracked_object, tracking_results_message
from core.enums import TrackerType
from core.exceptions import NotConnectedError, ProtocolError
from core.models import TrackingConfig, TrackingResults
from services.statistics import StatisticsAggregator
from services.streaming.protocol_router import (
    ProtocolRouter,
    build_define_zone,
    build_start_tracking,
)


def deliver(connection, message):
    connection.events.emit("message", json.dumps(message))


@pytest.fixture
def router(mock_connection):
    return ProtocolRouter(mock_connection)


@pytest.mark.asyncio
async def test_start_tracking_does_not_enable_until_ack(router, mock_connection):
    states = []
    router.events.on("tracking_state", states.append)

    assert await router.start_tracking()

    mock_connection.send.assert_awaited_once_with({"type": "start_tracking", "stream_id": "s1"})
    assert router.tracking_requested
    assert not router.tracking_enabled
    assert states == []

    deliver(mock_connection, {"type": "tracking_started", "stream_id": "s1"})

    assert router.tracking_enabled
    assert states == [True]


@pytest.mark.asyncio
async def test_stop_tracking_disables_on_ack(router, mock_connection):
    deliver(mock_connection, {"type": "tracking_started"})
    assert await router.stop_tracking()
    assert router.tracking_enabled

    deliver(mock_connection, {"type": "tracking_stopped"})
    assert not router.tracking_enabled
    assert not router.tracking_requested


@pytest.mark.asyncio
async def test_configure_tracking_merges_overrides(router, mock_connection):
    await router.configure_tracking(tracker_type="kalman", max_distance=80, fps=10)

    sent = mock_connection.send.await_args.args[0]
    assert sent["type"] == "configure_tracking"
    assert sent["config"]["tracker_type"] == "kalman"
    assert sent["config"]["tracker_params"] == {"max_disappeared": 30, "max_distance": 80.0, "use_kalman": True}
    assert sent["config"]["speed_config"]["fps"] == 10.0
    assert router.config.tracker_type is TrackerType.KALMAN
    assert router.acknowledged_config is None


@pytest.mark.asyncio
async def test_tracking_configured_acknowledges_pending_config(router, mock_connection):
    configured = []
    router.events.on("tracking_configured", configured.append)
    await router.configure_tracking(max_distance=120)

    deliver(mock_connection, {"type": "tracking_configured"})

    assert router.acknowledged_config.tracker_params.max_distance == 120
    assert configured == [router.acknowledged_config]


@pytest.mark.asyncio
async def test_send_failure_returns_false_and_emits_error(router, mock_connection):
    mock_connection.send.side_effect = NotConnectedError("WebSocket not connected")
    errors = []
    router.events.on("error", errors.append)

    assert not await router.start_tracking()
    assert not router.tracking_requested
    assert isinstance(errors[0], NotConnectedError)


def test_tracking_results_event(router, mock_connection):
    received = []
    router.events.on("tracking_results", lambda results, message: received.append(results))

    deliver(mock_connection, tracking_results_message(tracked_object("a"), tracked_object("b")))

    assert isinstance(received[0], TrackingResults)
    assert received[0].track_ids == ("a", "b")


def test_detections_event(router, mock_connection):
    received = []
    router.events.on("detections", lambda results, message: received.append((results, message)))

    deliver(mock_connection, {
        "type": "detections",
        "timestamp": 1700000000000,
        "results": {
            "face_detection": {
                "detections": [{"x1": 1, "y1": 2, "x2": 3, "y2": 4, "confidence": 0.5, "class": 0, "label": "face"}],
                "count": 1,
            }
        },
    })

    results, message = received[0]
    assert results["face_detection"].detections[0].class_id == 0
    assert message.timestamp == 1700000000000


def test_tracker_stats_are_merged(router, mock_connection):
    deliver(mock_connection, {"type": "tracker_stats", "stats": {"active_tracks": 2, "total_tracks": 5}})
    deliver(mock_connection, {"type": "tracker_stats", "stats": {"active_tracks": 3}})
    assert router.server_stats == {"active_tracks": 3, "total_tracks": 5}


@pytest.mark.asyncio
async def test_define_zone_and_confirmation(router, mock_connection):
    defined = []
    router.events.on("zone_defined", defined.append)
    points = [(0, 0), (100, 0), (100, 100)]

    assert await router.define_zone("entrance", points)

    mock_connection.send.assert_awaited_once_with(build_define_zone("entrance", points))
    assert not router.zones["entrance"].confirmed

    deliver(mock_connection, {"type": "zone_defined", "zone_id": "entrance"})

    assert router.zones["entrance"].confirmed
    assert defined == ["entrance"]


@pytest.mark.asyncio
async def test_define_zone_requires_three_points(router):
    with pytest.raises(ValueError):
        await router.define_zone("line", [(0, 0), (1, 1)])


def test_server_error_is_non_fatal(router, mock_connection):
    errors = []
    router.events.on("error", errors.append)

    deliver(mock_connection, {"type": "error", "message": "model not loaded"})
    deliver(mock_connection, {"type": "tracking_started"})

    assert isinstance(errors[0], ProtocolError)
    assert router.last_error == "model not loaded"
    assert router.tracking_enabled


def test_invalid_json_is_reported(router, mock_connection):
    errors = []
    router.events.on("error", errors.append)

    mock_connection.events.emit("message", "{not json")

    assert isinstance(errors[0], ProtocolError)


@pytest.mark.parametrize("payload", [
    {"type": "tracking_results", "results": {"tracked_objects": [1, 2]}},
    {"type": "tracking_results", "results": {"tracked_objects": {}, "summary": [3]}},
    {"type": "tracking_results", "results": {"tracked_objects": {"a": {"track_id": "a", "bbox": [0, 0, 1, 1], "centroid": [5]}}}},
    {"type": "detections", "results": {"m": "oops"}},
])
def test_malformed_payload_is_reported_not_raised(router, mock_connection, payload):
    errors = []
    results = []
    router.events.on("error", errors.append)
    router.events.on("tracking_results", lambda r, m: results.append(r))

    assert router.handle_raw(json.dumps(payload)) is None

    assert isinstance(errors[0], ProtocolError)
    assert results == []


def test_unknown_message_is_dropped(router, mock_connection):
    messages = []
    router.events.on("message", messages.append)

    deliver(mock_connection, {"type": "heartbeat"})

    assert router.unknown_messages == 1
    assert messages[0].type == "heartbeat"


def test_close_unsubscribes(router, mock_connection):
    router.close()
    deliver(mock_connection, {"type": "tracking_started"})
    assert not router.tracking_enabled


def test_builders():
    assert build_start_tracking("s1") == {"type": "start_tracking", "stream_id": "s1"}
    assert build_define_zone("z", [(1, 2), (3, 4), (5, 6)], "counting") == {
        "type": "define_zone",
        "zone_id": "z",
        "polygon_points": [[1.0, 2.0], [3.0, 4.0], [5.0, 6.0]],
        "zone_type": "counting",
    }


@pytest.mark.asyncio
async def test_configure_start_and_results_scenario(router, mock_connection):
    statistics = StatisticsAggregator(clock=lambda: 0.0)
    router.events.on("tracking_results", statistics.on_tracking_results)

    await router.configure_tracking(TrackingConfig(), tracker_type="centroid", max_distance=100)
    deliver(mock_connection, {"type": "tracking_configured"})
    await router.start_tracking()
    deliver(mock_connection, {"type": "tracking_started", "stream_id": "s1"})
    deliver(mock_connection, tracking_results_message(tracked_object("t1"), tracked_object("t2", bbox=(60, 60, 90, 90))))

    sent = [call.args[0] for call in mock_connection.send.await_args_list]
    assert sent[0]["config"]["tracker_type"] == "centroid"
    assert sent[0]["config"]["tracker_params"]["max_distance"] == 100
    assert sent[1] == {"type": "start_tracking", "stream_id": "s1"}
    assert router.tracking_enabled
    assert statistics.snapshot()["active_tracks"] == 2
