# core/models/tracking_models.py
from dataclasses import dataclass, field
from typing import Dict, Any, Optional, Tuple


@dataclass(frozen=True)
class SpeedInfo:
    """Thông tin tốc độ do server tính cho một track"""
    speed_px_per_sec: float = 0.0
    speed_m_per_sec: float = 0.0
    direction: float = 0.0
    avg_speed_px_per_sec: float = 0.0
    avg_speed_m_per_sec: float = 0.0

    def to_dict(self) -> Dict[str, float]:
        return {
            'speed_px_per_sec': self.speed_px_per_sec,
            'speed_m_per_sec': self.speed_m_per_sec,
            'direction': self.direction,
            'avg_speed_px_per_sec': self.avg_speed_px_per_sec,
            'avg_speed_m_per_sec': self.avg_speed_m_per_sec
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'SpeedInfo':
        return cls(
            speed_px_per_sec=float(data.get('speed_px_per_sec', 0.0)),
            speed_m_per_sec=float(data.get('speed_m_per_sec', 0.0)),
            direction=float(data.get('direction', 0.0)),
            avg_speed_px_per_sec=float(data.get('avg_speed_px_per_sec', 0.0)),
            avg_speed_m_per_sec=float(data.get('avg_speed_m_per_sec', 0.0))
        )


@dataclass(frozen=True)
class TrackedObject:
    """
    Snapshot of one server-side track.

    The client never mutates a track; every tracking message replaces the
    whole set of snapshots.
    """
    track_id: str
    class_name: str
    class_id: int
    bbox: Tuple[float, float, float, float]
    centroid: Tuple[float, float]
    confidence: float
    age: int = 0
    hits: int = 0
    time_since_update: int = 0
    velocity: Tuple[float, float] = (0.0, 0.0)
    speed_info: Optional[SpeedInfo] = None
    trajectory_length: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            'track_id': self.track_id,
            'class_name': self.class_name,
            'class_id': self.class_id,
            'bbox': list(self.bbox),
            'centroid': list(self.centroid),
            'confidence': self.confidence,
            'age': self.age,
            'hits': self.hits,
            'time_since_update': self.time_since_update,
            'velocity': list(self.velocity),
            'speed_info': self.speed_info.to_dict() if self.speed_info else None,
            'trajectory_length': self.trajectory_length
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any], track_id: Optional[str] = None) -> 'TrackedObject':
        bbox = tuple(float(v) for v in data['bbox'])
        if len(bbox) != 4:
            raise ValueError(f"bbox must have 4 values, got {len(bbox)}")

        centroid = data.get('centroid')
        if centroid is None:
            centroid = ((bbox[0] + bbox[2]) / 2, (bbox[1] + bbox[3]) / 2)

        speed_info = data.get('speed_info')

        return cls(
            track_id=str(data.get('track_id', track_id)),
            class_name=str(data.get('class_name', 'unknown')),
            class_id=int(data.get('class_id', -1)),
            bbox=bbox,
            centroid=(float(centroid[0]), float(centroid[1])),
            confidence=float(data.get('confidence', 0.0)),
            age=int(data.get('age', 0)),
            hits=int(data.get('hits', 0)),
            time_since_update=int(data.get('time_since_update', 0)),
            velocity=tuple(float(v) for v in data.get('velocity') or (0.0, 0.0)),
            speed_info=SpeedInfo.from_dict(speed_info) if speed_info else None,
            trajectory_length=int(data.get('trajectory_length', 0))
        )


@dataclass(frozen=True)
class TrackingSummary:
    total_tracks: int = 0
    active_tracks: int = 0
    class_counts: Dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'total_tracks': self.total_tracks,
            'active_tracks': self.active_tracks,
            'class_counts': dict(self.class_counts)
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'TrackingSummary':
        return cls(
            total_tracks=int(data.get('total_tracks', 0)),
            active_tracks=int(data.get('active_tracks', 0)),
            class_counts={str(k): int(v) for k, v in (data.get('class_counts') or {}).items()}
        )


@dataclass(frozen=True)
class TrackingResults:
    """Kết quả tracking cho một frame"""
    tracked_objects: Dict[str, TrackedObject] = field(default_factory=dict)
    zone_occupancy: Dict[str, Tuple[str, ...]] = field(default_factory=dict)
    summary: TrackingSummary = field(default_factory=TrackingSummary)

    @property
    def track_ids(self) -> Tuple[str, ...]:
        return tuple(self.tracked_objects.keys())

    def to_dict(self) -> Dict[str, Any]:
        return {
            'tracked_objects': {tid: obj.to_dict() for tid, obj in self.tracked_objects.items()},
            'zone_occupancy': {zid: list(ids) for zid, ids in self.zone_occupancy.items()},
            'summary': self.summary.to_dict()
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'TrackingResults':
        tracked_objects = {
            str(track_id): TrackedObject.from_dict(obj, track_id=str(track_id))
            for track_id, obj in (data.get('tracked_objects') or {}).items()
        }
        zone_occupancy = {
            str(zone_id): tuple(str(t) for t in occupants)
            for zone_id, occupants in (data.get('zone_occupancy') or {}).items()
        }
        return cls(
            tracked_objects=tracked_objects,
            zone_occupancy=zone_occupancy,
            summary=TrackingSummary.from_dict(data.get('summary') or {})
        )


@dataclass(frozen=True)
class ZoneDefinition:
    """Polygon zone requested by the client; confirmed once the server replies 'zone_defined'"""
    zone_id: str
    polygon_points: Tuple[Tuple[float, float], ...]
    zone_type: str = 'detection'
    confirmed: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            'zone_id': self.zone_id,
            'polygon_points': [list(p) for p in self.polygon_points],
            'zone_type': self.zone_type,
            'confirmed': self.confirmed
        }
