# tests/test_overlay_renderer.py
from dataclasses import replace

import pytest

from conftest import tracked_object
from core.models import Detection, ModelDetectionResult, SpeedInfo, TrackingResults, ZoneDefinition
from services.overlay import (
    Arrow,
    Circle,
    CoordinateTransform,
    InfoBlock,
    Label,
    OverlayConfig,
    OverlayRenderer,
    Polygon,
    Polyline,
    Rectangle,
    TrackColorRegistry,
    format_info_lines,
)
from shared.config.visual_configs import DEFAULT_MODEL_COLOR, MODEL_COLORS, TRACK_COLOR_PALETTE


def results_of(*objects, zone_occupancy=None) -> TrackingResults:
    return TrackingResults.from_dict({
        "tracked_objects": {obj["track_id"]: obj for obj in objects},
        "zone_occupancy": zone_occupancy or {},
        "summary": {"total_tracks": len(objects), "active_tracks": len(objects)},
    })


def of_type(instructions, kind):
    return [i for i in instructions if isinstance(i, kind)]


def test_detection_box_scaled_to_display():
    transform = CoordinateTransform((1280, 720), (640, 360))
    detection = Detection(100, 100, 200, 200, confidence=0.87, class_id=0, label="person")
    renderer = OverlayRenderer()

    instructions = renderer.render_detections(
        {"person_detection": ModelDetectionResult("person_detection", [detection], 1)}, transform
    )

    rect = of_type(instructions, Rectangle)[0]
    assert (rect.x1, rect.y1, rect.x2, rect.y2) == (50, 50, 100, 100)
    assert rect.color == MODEL_COLORS["person_detection"]

    label = of_type(instructions, Label)[0]
    assert label.text == "person 87%"
    assert (label.x, label.y) == (50, 50)


def test_unknown_model_uses_fallback_color():
    renderer = OverlayRenderer()
    detection = Detection(0, 0, 10, 10, 0.5, 1, "thing")
    instructions = renderer.render_detections(
        {"custom_model": ModelDetectionResult("custom_model", [detection], 1)},
        CoordinateTransform.identity((100, 100))
    )
    assert of_type(instructions, Rectangle)[0].color == DEFAULT_MODEL_COLOR


def test_zero_source_size_rejected():
    with pytest.raises(ValueError):
        CoordinateTransform((0, 720), (640, 360))


def test_color_registry_assigns_palette_in_order_and_wraps():
    registry = TrackColorRegistry()
    colors = [registry.color_for(f"t{i}") for i in range(len(TRACK_COLOR_PALETTE) + 2)]

    assert colors[:len(TRACK_COLOR_PALETTE)] == list(TRACK_COLOR_PALETTE)
    assert colors[-2:] == list(TRACK_COLOR_PALETTE[:2])
    assert registry.color_for("t0") == TRACK_COLOR_PALETTE[0]


def test_color_registry_eviction_is_optional():
    registry = TrackColorRegistry(max_entries=2)
    registry.color_for("a")
    registry.color_for("b")
    registry.color_for("a")
    registry.color_for("c")

    assert "b" not in registry
    assert "a" in registry and "c" in registry


def test_color_registry_keeps_cycling_palette_after_eviction():
    registry = TrackColorRegistry(palette=("a", "b", "c"), max_entries=2)
    colors = [registry.color_for(str(i)) for i in range(6)]

    assert colors == ["a", "b", "c", "a", "b", "c"]
    assert len(registry) == 2


def test_renderer_color_cap_comes_from_config():
    renderer = OverlayRenderer(OverlayConfig(max_track_colors=3))
    assert renderer.colors.max_entries == 3
    assert OverlayRenderer().colors.max_entries is None


def test_track_keeps_color_across_messages():
    renderer = OverlayRenderer()
    transform = CoordinateTransform.identity((640, 480))

    def color_of(instructions, track_bbox):
        rect = [r for r in of_type(instructions, Rectangle) if (r.x1, r.y1) == track_bbox[:2]][0]
        return rect.color

    bbox = (100, 100, 150, 150)
    first = renderer.render_tracking(results_of(tracked_object("abc123", bbox), tracked_object("x1")), transform)
    second = renderer.render_tracking(
        results_of(tracked_object("y1"), tracked_object("y2"), tracked_object("abc123", bbox)), transform
    )
    third = renderer.render_tracking(results_of(tracked_object("z9"), tracked_object("abc123", bbox)), transform)

    assert color_of(first, bbox) == color_of(second, bbox) == color_of(third, bbox) == TRACK_COLOR_PALETTE[0]


def test_render_replaces_previous_overlay():
    renderer = OverlayRenderer()
    transform = CoordinateTransform.identity((640, 480))

    renderer.render_tracking(results_of(tracked_object("a"), tracked_object("b")), transform)
    renderer.render_tracking(results_of(tracked_object("c")), transform)

    assert len(of_type(renderer.instructions, Rectangle)) == 1
    assert len(of_type(renderer.instructions, Circle)) == 1


def test_tracking_instruction_set():
    renderer = OverlayRenderer()
    transform = CoordinateTransform((1280, 720), (640, 360))
    obj = tracked_object(
        "track-0001", (100, 100, 200, 300),
        speed_info={"speed_m_per_sec": 2.7, "avg_speed_m_per_sec": 1.2},
    )

    renderer.render_tracking(results_of(obj), transform)
    instructions = renderer.render_tracking(results_of(obj), transform)

    circle = of_type(instructions, Circle)[0]
    assert (circle.x, circle.y) == (75, 100)

    info = of_type(instructions, InfoBlock)[0]
    assert info.lines == ("ID: track-", "person", "Speed: 2", "Avg Speed: 1")
    assert (info.x, info.y) == (50, 50)

    assert len(of_type(instructions, Polyline)) == 1
    arrow = of_type(instructions, Arrow)[0]
    assert arrow.start == (75, 100)
    assert arrow.end == pytest.approx((75.75, 99.75))


def test_config_flags_disable_layers():
    config = OverlayConfig(
        show_bounding_boxes=False,
        show_trajectories=False,
        show_velocity_vectors=False,
        show_object_info=False,
    )
    renderer = OverlayRenderer(config)
    instructions = renderer.render_tracking(results_of(tracked_object("a")), CoordinateTransform.identity((10, 10)))

    assert [type(i) for i in instructions] == [Circle]


def test_info_lines_without_speed_info():
    obj = TrackingResults.from_dict({"tracked_objects": {"abc": tracked_object("abc")}}).tracked_objects["abc"]
    assert format_info_lines("abc", obj) == ("ID: abc", "person")


def test_info_lines_floor_speed():
    obj = TrackingResults.from_dict({
        "tracked_objects": {"abcdefgh": tracked_object("abcdefgh")}
    }).tracked_objects["abcdefgh"]
    obj = replace(obj, speed_info=SpeedInfo(speed_m_per_sec=3.99, avg_speed_m_per_sec=0.5))

    assert format_info_lines("abcdefgh", obj) == ("ID: abcdef", "person", "Speed: 3", "Avg Speed: 0")
    assert format_info_lines("abcdefgh", obj, show_speed=False) == ("ID: abcdef", "person")


def test_trajectory_buffer_bounded_and_pruned():
    renderer = OverlayRenderer(OverlayConfig(trajectory_history=3))
    transform = CoordinateTransform.identity((640, 480))

    for step in range(5):
        renderer.render_tracking(
            results_of(tracked_object("a", (step, step, step + 10, step + 10)), tracked_object("b")), transform
        )
    assert len(renderer.trajectories["a"]) == 3

    renderer.render_tracking(results_of(tracked_object("a")), transform)
    assert "b" not in renderer.trajectories


def test_zones_drawn_with_occupancy():
    renderer = OverlayRenderer()
    zone = ZoneDefinition("door", ((0, 0), (100, 0), (100, 100)))
    instructions = renderer.render_tracking(
        results_of(tracked_object("a"), zone_occupancy={"door": ["a"]}),
        CoordinateTransform((200, 200), (100, 100)),
        zones=[zone]
    )

    polygon = of_type(instructions, Polygon)[0]
    assert polygon.points == ((0, 0), (50, 0), (50, 50))
    assert polygon.label == "door (1)"


def test_reset_clears_colors_and_trajectories():
    renderer = OverlayRenderer()
    renderer.render_tracking(results_of(tracked_object("a")), CoordinateTransform.identity((10, 10)))
    renderer.reset()
    assert len(renderer.colors) == 0
    assert renderer.trajectories == {}
    assert renderer.instructions == []
