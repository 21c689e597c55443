# services/streaming/frame_encoder.py
"""
Binary frame wire format.

    [4 bytes: unix timestamp seconds, big-endian uint32]
    [1 byte: model count N]
    per model:
        [1 byte: name length][name, UTF-8]
        [1 byte: has-filter flag]
        if flag: [1 byte: class count] then per class [1 byte: length][label, UTF-8]
    [remaining bytes: image, no length prefix]
"""
import struct
import time
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple, Union

from core.exceptions import FrameEncodingError, FrameDecodingError
from core.models import ModelRequest

MAX_FIELD_BYTES = 255
MAX_MODELS = 255
MAX_CLASSES = 255

_TIMESTAMP = struct.Struct(">I")
_HEADER_SIZE = _TIMESTAMP.size + 1


@dataclass(frozen=True)
class DecodedFrame:
    timestamp: int
    models: Tuple[ModelRequest, ...]
    image: bytes


def _encode_field(value: str, what: str) -> bytes:
    raw = value.encode('utf-8')
    if len(raw) > MAX_FIELD_BYTES:
        raise FrameEncodingError(
            f"{what} '{value[:32]}...' is {len(raw)} bytes, limit is {MAX_FIELD_BYTES}"
        )
    return bytes((len(raw),)) + raw


def _encode_model(model: ModelRequest) -> bytes:
    parts = [_encode_field(model.name, "Model name")]

    if not model.has_filter:
        parts.append(b"\x00")
        return b"".join(parts)

    if len(model.class_filter) > MAX_CLASSES:
        raise FrameEncodingError(
            f"Model '{model.name}' has {len(model.class_filter)} classes in filter, limit is {MAX_CLASSES}"
        )

    parts.append(b"\x01")
    parts.append(bytes((len(model.class_filter),)))
    for class_name in model.class_filter:
        parts.append(_encode_field(class_name, "Class label"))
    return b"".join(parts)


def encode_frame(
    image: Union[bytes, bytearray, memoryview],
    models: Sequence[Union[ModelRequest, str]],
    timestamp: Optional[int] = None
) -> bytes:
    """
    Pack image bytes and model requests into one binary message.

    Every header field is validated before the output is assembled, so an
    oversized name or label fails the whole frame and nothing partial is
    produced.

    Raises:
        FrameEncodingError: a name or label exceeds 255 UTF-8 bytes, or more
            than 255 models/classes were given.
    """
    requests = [ModelRequest.coerce(m) for m in models]
    if len(requests) > MAX_MODELS:
        raise FrameEncodingError(f"{len(requests)} models requested, limit is {MAX_MODELS}")

    if timestamp is None:
        timestamp = int(time.time())
    if not 0 <= timestamp <= 0xFFFFFFFF:
        raise FrameEncodingError(f"Timestamp {timestamp} does not fit in 4 bytes")

    model_blocks = [_encode_model(m) for m in requests]

    return b"".join([
        _TIMESTAMP.pack(timestamp),
        bytes((len(requests),)),
        *model_blocks,
        bytes(image)
    ])


class _Reader:
    def __init__(self, payload: bytes):
        self.payload = payload
        self.offset = 0

    def take(self, size: int, what: str) -> bytes:
        end = self.offset + size
        if end > len(self.payload):
            raise FrameDecodingError(
                f"Truncated frame while reading {what} at offset {self.offset}"
            )
        chunk = self.payload[self.offset:end]
        self.offset = end
        return chunk

    def byte(self, what: str) -> int:
        return self.take(1, what)[0]

    def text(self, what: str) -> str:
        length = self.byte(f"{what} length")
        try:
            return self.take(length, what).decode('utf-8')
        except UnicodeDecodeError as e:
            raise FrameDecodingError(f"Invalid UTF-8 in {what}: {e}") from e


def decode_frame(payload: Union[bytes, bytearray, memoryview]) -> DecodedFrame:
    """Inverse of encode_frame; the image is everything after the header."""
    reader = _Reader(bytes(payload))
    if len(reader.payload) < _HEADER_SIZE:
        raise FrameDecodingError(f"Frame is {len(reader.payload)} bytes, header needs {_HEADER_SIZE}")

    (timestamp,) = _TIMESTAMP.unpack(reader.take(_TIMESTAMP.size, "timestamp"))
    model_count = reader.byte("model count")

    models: List[ModelRequest] = []
    for _ in range(model_count):
        name = reader.text("model name")
        class_filter: Tuple[str, ...] = ()
        if reader.byte("filter flag"):
            class_count = reader.byte("class count")
            class_filter = tuple(reader.text("class label") for _ in range(class_count))
        models.append(ModelRequest(name=name, class_filter=class_filter))

    return DecodedFrame(
        timestamp=timestamp,
        models=tuple(models),
        image=reader.payload[reader.offset:]
    )
