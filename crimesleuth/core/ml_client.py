"""
HTTP client for the external ML analysis service.

Every call is bounded by a timeout. Connection errors, timeouts and
non-2xx replies surface as ``UpstreamServiceError`` carrying the
upstream message.
"""

import logging
from typing import Any, Dict, Optional

import requests

from .config import settings
from .errors import UpstreamServiceError

logger = logging.getLogger(__name__)


class MLClient:
    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        health_timeout: Optional[float] = None,
    ):
        self.base_url = (base_url or settings.ml_server_url).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.ml_timeout_seconds
        self.health_timeout = (
            health_timeout if health_timeout is not None else settings.ml_health_timeout_seconds
        )

    def _handle(self, resp: requests.Response) -> Dict[str, Any]:
        try:
            data = resp.json()
        except ValueError:
            data = None
        if resp.ok:
            return data if isinstance(data, dict) else {}
        if isinstance(data, dict) and (data.get("error") or data.get("message")):
            msg = str(data.get("error") or data.get("message"))
        else:
            msg = f"ML service error: {resp.status_code}"
        raise UpstreamServiceError(msg)

    def _request(self, method: str, path: str, timeout: float, **kwargs) -> Dict[str, Any]:
        url = f"{self.base_url}{path}"
        try:
            resp = requests.request(method, url, timeout=timeout, **kwargs)
        except requests.Timeout:
            logger.error("ML service timed out: %s %s", method, url)
            raise UpstreamServiceError("ML operation timed out")
        except requests.RequestException as e:
            logger.error("ML service unreachable: %s %s: %s", method, url, e)
            raise UpstreamServiceError(f"Cannot connect to ML server at {self.base_url}: {e}")
        return self._handle(resp)

    def health(self) -> Dict[str, Any]:
        return self._request("GET", "/health", self.health_timeout)

    def generate_summary(
        self,
        case_id: str,
        image_id: str,
        image: bytes,
        filename: str = "image",
        content_type: str = "application/octet-stream",
    ) -> Dict[str, Any]:
        """Returns {summary, objects_detected, crime_type}"""
        data = self._request(
            "POST",
            "/generate-summary",
            self.timeout,
            data={"case_id": case_id, "image_id": image_id},
            files={"image": (filename, image, content_type)},
        )
        return {
            "summary": data.get("summary") or "No detailed analysis available for this image.",
            "objects_detected": data.get("objects_detected") or [],
            "crime_type": data.get("crime_type") or "Unknown",
        }

    def generate_case_report(self, case_id: str) -> Dict[str, Any]:
        """Returns {report}"""
        data = self._request(
            "POST",
            "/generate-case-report",
            self.timeout,
            json={"case_id": case_id},
        )
        return {"report": data.get("report")}


def get_ml_client() -> MLClient:
    """Dependency returning a client bound to the configured service"""
    return MLClient()
