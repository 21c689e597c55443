# core/models/detection_models.py
from dataclasses import dataclass, field
from typing import List, Dict, Any, Optional, Tuple


@dataclass(frozen=True)
class Detection:
    """Một detection (không có track id) trong toạ độ pixel của frame gốc"""
    x1: float
    y1: float
    x2: float
    y2: float
    confidence: float
    class_id: int
    label: str

    @property
    def bbox(self) -> Tuple[float, float, float, float]:
        return (self.x1, self.y1, self.x2, self.y2)

    @property
    def width(self) -> float:
        return self.x2 - self.x1

    @property
    def height(self) -> float:
        return self.y2 - self.y1

    def to_dict(self) -> Dict[str, Any]:
        return {
            'x1': self.x1,
            'y1': self.y1,
            'x2': self.x2,
            'y2': self.y2,
            'confidence': self.confidence,
            'class_id': self.class_id,
            'label': self.label
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Detection':
        """Create Detection from server payload ('class_id' or legacy 'class' key)"""
        class_id = data.get('class_id', data.get('class', -1))
        return cls(
            x1=float(data['x1']),
            y1=float(data['y1']),
            x2=float(data['x2']),
            y2=float(data['y2']),
            confidence=float(data.get('confidence', 0.0)),
            class_id=int(class_id),
            label=str(data.get('label', ''))
        )


@dataclass(frozen=True)
class ModelDetectionResult:
    """Kết quả detection của một model trong message 'detections'"""
    model: str
    detections: List[Detection] = field(default_factory=list)
    count: int = 0
    error: Optional[str] = None

    @property
    def has_error(self) -> bool:
        return self.error is not None

    def to_dict(self) -> Dict[str, Any]:
        result = {
            'model': self.model,
            'detections': [d.to_dict() for d in self.detections],
            'count': self.count
        }
        if self.error is not None:
            result['error'] = self.error
        return result

    @classmethod
    def from_dict(cls, model_name: str, data: Dict[str, Any]) -> 'ModelDetectionResult':
        detections = [Detection.from_dict(d) for d in data.get('detections') or []]
        return cls(
            model=str(data.get('model', model_name)),
            detections=detections,
            count=int(data.get('count', len(detections))),
            error=data.get('error')
        )
