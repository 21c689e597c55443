# tests/test_model_api_client.py
import httpx
import pytest

from core.exceptions import ModelLoadError
from infrastructure.external.model_api_client import ModelApiClient, parse_models_response
from shared.utils.validation import ValidationError


def make_client(handler) -> ModelApiClient:
    return ModelApiClient("http://inference:8000/", transport=httpx.MockTransport(handler))


@pytest.mark.asyncio
async def test_list_models():
    def handler(request: httpx.Request):
        assert request.url.path == "/models"
        return httpx.Response(200, json=[
            {"name": "face_detection", "loaded": True, "available_classes": ["face"]},
            {"name": "vehicle_detection"},
        ])

    models = await make_client(handler).list_models()

    assert [m.name for m in models] == ["face_detection", "vehicle_detection"]
    assert models[0].loaded and not models[1].loaded


@pytest.mark.asyncio
async def test_list_models_returns_empty_on_server_error():
    client = make_client(lambda request: httpx.Response(503))
    assert await client.list_models() == []
    assert client.get_stats()["failed_requests"] == 1


@pytest.mark.asyncio
async def test_load_model_posts_to_endpoint():
    seen = []

    def handler(request: httpx.Request):
        seen.append((request.method, request.url.path))
        return httpx.Response(200, json={"success": True, "model": "face_detection"})

    client = make_client(handler)
    assert await client.load_model("face_detection") is True
    assert seen == [("POST", "/models/face_detection/load")]
    assert client.get_stats()["successful_requests"] == 1


@pytest.mark.asyncio
async def test_load_model_http_error_raises():
    client = make_client(lambda request: httpx.Response(404, json={"detail": "unknown model"}))

    with pytest.raises(ModelLoadError) as exc_info:
        await client.load_model("nope")

    assert exc_info.value.model_name == "nope"
    assert exc_info.value.status_code == 404


@pytest.mark.asyncio
async def test_load_model_retries_transport_errors(mocker):
    mocker.patch("shared.decorators.retry.asyncio.sleep", new=mocker.AsyncMock())
    calls = []

    def handler(request: httpx.Request):
        calls.append(request)
        if len(calls) < 3:
            raise httpx.ConnectError("refused", request=request)
        return httpx.Response(200, json={"success": True})

    assert await make_client(handler).load_model("face_detection")
    assert len(calls) == 3


@pytest.mark.asyncio
async def test_get_model_classes():
    def handler(request: httpx.Request):
        assert request.url.path == "/models/person_detection/classes"
        return httpx.Response(200, json={"class_names": ["person", "bicycle"]})

    assert await make_client(handler).get_model_classes("person_detection") == ["person", "bicycle"]


@pytest.mark.asyncio
async def test_get_model_classes_missing_key_returns_none():
    client = make_client(lambda request: httpx.Response(200, json={"classes": []}))
    assert await client.get_model_classes("m") is None


def test_parse_models_response_shapes():
    assert [m.name for m in parse_models_response({"models": ["a", "b"], "device": "cpu"})] == ["a", "b"]
    with pytest.raises(ValidationError):
        parse_models_response({"unexpected": True})
