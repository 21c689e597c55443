# core/models/request_models.py
from dataclasses import dataclass, field
from typing import List, Optional, Tuple, Iterable, Union
from pydantic import BaseModel, ConfigDict


@dataclass(frozen=True)
class ModelRequest:
    """Model cần chạy cho một frame, kèm danh sách class được phép (rỗng = tất cả)"""
    name: str
    class_filter: Tuple[str, ...] = field(default_factory=tuple)

    def __post_init__(self):
        if self.class_filter is None:
            object.__setattr__(self, 'class_filter', ())
        elif not isinstance(self.class_filter, tuple):
            object.__setattr__(self, 'class_filter', tuple(self.class_filter))

    @property
    def has_filter(self) -> bool:
        return len(self.class_filter) > 0

    @classmethod
    def coerce(cls, value: Union['ModelRequest', str]) -> 'ModelRequest':
        """Accept a bare model name wherever a request is expected"""
        if isinstance(value, ModelRequest):
            return value
        return cls(name=str(value))


def as_model_requests(values: Iterable[Union[ModelRequest, str]]) -> List[ModelRequest]:
    return [ModelRequest.coerce(v) for v in values]


class ModelInfo(BaseModel):
    """Model description returned by GET /models"""
    name: str
    loaded: bool = False
    available_classes: Optional[List[str]] = None

    model_config = ConfigDict(extra="ignore")
