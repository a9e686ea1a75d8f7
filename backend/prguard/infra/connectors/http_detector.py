"""VulnerabilityDetector adapter for an HTTP detection service.

The service receives ``{"code", "filename"}`` and answers with a JSON
list of findings (or ``{"vulnerabilities": [...]}``).  Both snake_case
and camelCase field names are accepted.
"""

from __future__ import annotations

import logging

import httpx

from prguard.domain.common.errors import (
    PermanentDetectorError,
    TransientDetectorError,
)
from prguard.domain.scanning.models import Vulnerability
from prguard.domain.scanning.ports import VulnerabilityDetector

logger = logging.getLogger(__name__)


class HttpVulnerabilityDetector(VulnerabilityDetector):
    def __init__(
        self,
        url: str,
        *,
        api_key: str | None = None,
        timeout: float = 120.0,
        client: httpx.Client | None = None,
    ) -> None:
        headers = {"Content-Type": "application/json"}
        if api_key:
            headers["Authorization"] = f"Bearer {api_key}"
        self._url = url
        self._client = client or httpx.Client(headers=headers, timeout=timeout)

    @property
    def name(self) -> str:
        return "http-detector"

    def detect(self, code: str, filename: str) -> list[Vulnerability]:
        try:
            response = self._client.post(
                self._url, json={"code": code, "filename": filename}
            )
        except httpx.TimeoutException as exc:
            raise TransientDetectorError(f"Detector timed out on {filename}") from exc
        except httpx.TransportError as exc:
            raise TransientDetectorError(f"Detector unreachable: {exc}") from exc

        status = response.status_code
        if status == 429 or status >= 500:
            raise TransientDetectorError(f"Detector returned {status} for {filename}")
        if status >= 400:
            raise PermanentDetectorError(f"Detector rejected {filename} ({status})")

        try:
            payload = response.json()
        except ValueError as exc:
            raise PermanentDetectorError(f"Detector returned invalid JSON for {filename}") from exc

        items = payload.get("vulnerabilities") if isinstance(payload, dict) else payload
        if not isinstance(items, list):
            raise PermanentDetectorError(f"Unexpected detector response for {filename}")

        try:
            findings = [Vulnerability.from_dict(item) for item in items if isinstance(item, dict)]
        except (TypeError, ValueError, AttributeError) as exc:
            raise PermanentDetectorError(
                f"Malformed finding from detector for {filename}: {exc}"
            ) from exc
        logger.debug("Detector found %d issue(s) in %s", len(findings), filename)
        return findings

    def close(self) -> None:
        self._client.close()
