# infrastructure/external/model_api_client.py

import httpx
import logging
from typing import Dict, List, Any, Optional
from datetime import datetime, timezone

from core.exceptions import ModelLoadError
from core.models import ModelInfo
from shared.decorators.retry import retry
from shared.decorators.error_handling import handle_network_errors
from shared.utils.validation import ValidationError, validate_list_response, validate_response

logger = logging.getLogger(__name__)


def parse_models_response(data: Any) -> List[ModelInfo]:
    """
    GET /models trả về list ModelInfo; một số server cũ trả về
    {"models": ["name", ...]} hoặc list tên model.
    """
    if isinstance(data, dict) and 'models' in data:
        data = data['models']

    validate_list_response(data)

    models = []
    for item in data:
        if isinstance(item, str):
            models.append(ModelInfo(name=item))
        else:
            validate_response(item, required_keys=['name'])
            models.append(ModelInfo.model_validate(item))
    return models


class ModelApiClient:
    """REST client cho model catalogue của inference server"""

    def __init__(
        self,
        base_url: str = "http://localhost:8000",
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout

        # HTTP client config
        self.client_config: Dict[str, Any] = {
            "timeout": httpx.Timeout(self.timeout),
            "headers": {
                "Content-Type": "application/json",
                "User-Agent": "SmartCamera-TrackingClient/1.0",
            },
        }
        if transport is not None:
            self.client_config["transport"] = transport

        # Stats
        self.request_count = 0
        self.success_count = 0
        self.error_count = 0
        self.last_request_time: Optional[datetime] = None

    async def _request(self, method: str, path: str) -> httpx.Response:
        endpoint = f"{self.base_url}{path}"
        self.request_count += 1
        self.last_request_time = datetime.now(timezone.utc)

        try:
            async with httpx.AsyncClient(**self.client_config) as client:
                response = await client.request(method, endpoint)
            response.raise_for_status()
        except httpx.HTTPError:
            self.error_count += 1
            raise

        self.success_count += 1
        return response

    # -----------------------------
    # Models
    # -----------------------------
    @handle_network_errors(default_return=[])
    async def list_models(self) -> List[ModelInfo]:
        """Danh sách model server hỗ trợ (rỗng khi server không truy cập được)"""
        response = await self._request("GET", "/models")
        models = parse_models_response(response.json())
        logger.debug(f"📋 {len(models)} models available")
        return models

    @retry(max_attempts=3, delay=1.0, exceptions=(httpx.TransportError,))
    async def _post_load(self, model_name: str) -> httpx.Response:
        return await self._request("POST", f"/models/{model_name}/load")

    async def load_model(self, model_name: str) -> bool:
        """
        Yêu cầu server load model.

        Raises:
            ModelLoadError: server trả lỗi HTTP hoặc không kết nối được.
        """
        try:
            await self._post_load(model_name)
        except httpx.HTTPStatusError as e:
            logger.error(f"❌ Failed to load model {model_name}: HTTP {e.response.status_code}")
            raise ModelLoadError(
                model_name,
                f"Loading '{model_name}' failed with HTTP {e.response.status_code}",
                status_code=e.response.status_code
            ) from e
        except httpx.HTTPError as e:
            logger.error(f"❌ Failed to load model {model_name}: {e}")
            raise ModelLoadError(model_name, f"Loading '{model_name}' failed: {e}") from e

        logger.info(f"🧠 Model load requested - {model_name}")
        return True

    @handle_network_errors(default_return=None)
    async def get_model_classes(self, model_name: str) -> Optional[List[str]]:
        """Class labels của model, None khi không lấy được"""
        response = await self._request("GET", f"/models/{model_name}/classes")
        data = response.json()
        try:
            validate_response(data, required_keys=['class_names'])
        except ValidationError as e:
            logger.warning(f"⚠️ Unexpected classes response for {model_name}: {e}")
            return None
        return [str(c) for c in data['class_names'] or []]

    # -----------------------------
    # Stats
    # -----------------------------
    def get_stats(self) -> Dict[str, Any]:
        """Lấy thống kê client"""
        success_rate = (
            (self.success_count / self.request_count * 100)
            if self.request_count > 0
            else 0
        )

        return {
            "total_requests": self.request_count,
            "successful_requests": self.success_count,
            "failed_requests": self.error_count,
            "success_rate_percent": round(success_rate, 2),
            "last_request_time": self.last_request_time.isoformat()
            if self.last_request_time
            else None,
            "api_url": self.base_url,
        }
