"""
HTTP clients for the collaborators the engine calls out to:
profile provider, document extraction and the government submission API.
"""
import logging
from typing import Any, Dict, Optional

import httpx

from govflow.config import settings
from govflow.exceptions import ExternalTimeout, ExternalUnavailable, NotFound
from govflow.models import Application, CandidateValue, ProfileSnapshot, SubmissionReceipt

logger = logging.getLogger(__name__)


class CollaboratorClient:
    """Shared request handling; maps transport failures onto engine errors"""

    service_name = "collaborator"

    def __init__(
        self,
        base_url: str,
        timeout: float,
        api_key: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.api_key = api_key
        self.transport = transport

    def _headers(self, extra: Optional[Dict[str, str]] = None) -> Dict[str, str]:
        headers = {"Content-Type": "application/json", "X-Client": "govflow"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        if extra:
            headers.update(extra)
        return headers

    async def _request(
        self,
        method: str,
        path: str,
        json: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None
    ) -> httpx.Response:
        url = f"{self.base_url}{path}"
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.request(method, url, json=json, headers=self._headers(headers))
        except httpx.TimeoutException as e:
            logger.warning(f"{self.service_name} timed out on {method} {path}: {e}")
            raise ExternalTimeout(f"{self.service_name} did not respond in time", service=self.service_name)
        except httpx.HTTPError as e:
            logger.error(f"{self.service_name} request {method} {path} failed: {e}")
            raise ExternalUnavailable(f"{self.service_name} is unavailable", service=self.service_name)

        if response.status_code == 404:
            raise NotFound(f"{self.service_name} has no resource at {path}")
        if response.status_code >= 400:
            logger.error(f"{self.service_name} error: {response.status_code} - {response.text}")
            raise ExternalUnavailable(
                f"{self.service_name} returned HTTP {response.status_code}",
                service=self.service_name
            )
        return response


class ProfileClient(CollaboratorClient):
    """Profile provider: read-only eligibility snapshots of user profiles"""

    service_name = "profile_provider"

    async def get_profile_snapshot(self, user_id: str) -> ProfileSnapshot:
        response = await self._request("GET", f"/profiles/{user_id}/snapshot")
        data = response.json()
        data.setdefault("user_id", user_id)
        return ProfileSnapshot(**data)


class ExtractionClient(CollaboratorClient):
    """Document extraction: candidate field values pulled from an uploaded document"""

    service_name = "document_extraction"

    async def get_extracted_fields(self, document_id: str) -> Dict[str, CandidateValue]:
        response = await self._request("GET", f"/documents/{document_id}/fields")
        data = response.json()
        fields = data.get("fields", data)
        return {field_id: CandidateValue(**candidate) for field_id, candidate in fields.items()}


class GovernmentClient(CollaboratorClient):
    """Government submission API; deduplicates on the Idempotency-Key header"""

    service_name = "government_api"

    async def submit(self, application: Application) -> SubmissionReceipt:
        payload = {
            "application_id": application.application_id,
            "user_id": application.user_id,
            "service_id": application.service_id,
            "form_version": application.form_version,
            "fields": application.frozen_fields,
            "document_ids": application.document_ids,
        }
        response = await self._request(
            "POST",
            "/applications",
            json=payload,
            headers={"Idempotency-Key": application.idempotency_key}
        )
        receipt = SubmissionReceipt(**response.json())
        logger.info(
            f"Government API accepted application {application.application_id} "
            f"with confirmation {receipt.confirmation_number}"
        )
        return receipt


def build_profile_client() -> ProfileClient:
    return ProfileClient(settings.profile_api_url, timeout=settings.profile_timeout_seconds)


def build_extraction_client() -> ExtractionClient:
    return ExtractionClient(settings.extraction_api_url, timeout=settings.extraction_timeout_seconds)


def build_government_client() -> GovernmentClient:
    return GovernmentClient(
        settings.government_api_url,
        timeout=settings.submission_timeout_seconds,
        api_key=settings.government_api_key or None
    )
