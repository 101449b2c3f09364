"""
REST backend: entity and search services over the DataHub GMS HTTP API.
"""

from typing import Any, Dict, Iterable, List, Optional
from urllib.parse import quote

import requests

from .logger import get_logger
from .models import AuditStamp, EntityResponse, Filter, MetadataChangeProposal, ScrollResult, SearchFlags
from .retry import RetryError, exponential_backoff, is_transient_error, should_retry_http_status
from .urn import Urn

logger = get_logger()

DEFAULT_TIMEOUT = 30


class GmsError(Exception):
    """Raised when the metadata service rejects or fails a request."""

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status


class RetryableStatusError(GmsError):
    pass


def _is_retryable(error: Exception) -> bool:
    """Known transient failure types always retry; other transport errors only when the message looks transient."""
    if isinstance(error, (RetryableStatusError, requests.exceptions.Timeout, requests.exceptions.ConnectionError)):
        return True
    return is_transient_error(error)


def _log_retry(attempt: int, error: Exception, delay: float) -> None:
    logger.warning("Retrying GMS request", attempt=attempt, delay=delay, error=str(error))


class GmsClient:
    """Implements both the entity and search service interfaces."""

    def __init__(
        self,
        base_url: str,
        token: Optional[str] = None,
        timeout: float = DEFAULT_TIMEOUT,
        session: Optional[requests.Session] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({
            "Content-Type": "application/json",
            "X-RestLi-Protocol-Version": "2.0.0",
        })
        if token:
            self.session.headers["Authorization"] = f"Bearer {token}"

    @exponential_backoff(
        max_retries=3,
        base_delay=1.0,
        exceptions=(requests.exceptions.RequestException, RetryableStatusError),
        retry_if=_is_retryable,
        on_retry=_log_retry,
    )
    def _send(self, method: str, path: str, **kwargs) -> requests.Response:
        logger.record_api_call()
        resp = self.session.request(method, f"{self.base_url}{path}", timeout=self.timeout, **kwargs)
        if should_retry_http_status(resp.status_code):
            raise RetryableStatusError(f"GMS returned {resp.status_code} for {path}", resp.status_code)
        return resp

    def _request(self, method: str, path: str, allow_404: bool = False, **kwargs) -> Optional[Dict[str, Any]]:
        try:
            resp = self._send(method, path, **kwargs)
            if allow_404 and resp.status_code == 404:
                return None
            resp.raise_for_status()
        except requests.exceptions.HTTPError as e:
            status = e.response.status_code if e.response is not None else None
            logger.error("GMS request failed", path=path, status=status)
            raise GmsError(f"GMS request failed ({status}): {path}", status) from e
        except RetryError as e:
            status = getattr(e.__cause__, "status", None)
            logger.error("GMS request failed after retries", path=path, status=status)
            raise GmsError(f"GMS request failed after retries: {path}", status) from e
        except requests.exceptions.RequestException as e:
            logger.error("GMS request error", path=path, error=str(e))
            raise GmsError(f"GMS request error: {e}") from e

        if not resp.content:
            return {}
        return resp.json()

    # Search service

    def scroll_across_entities(
        self,
        entities: List[str],
        input: str,
        filter: Optional[Filter],
        sort_criterion: Optional[str],
        scroll_id: Optional[str],
        keep_alive: Optional[str],
        size: int,
        search_flags: Optional[SearchFlags] = None,
    ) -> ScrollResult:
        body: Dict[str, Any] = {"entities": list(entities), "input": input, "count": size}
        if filter is not None:
            body["filter"] = filter.to_dict()
        if sort_criterion is not None:
            body["sort"] = {"field": sort_criterion, "order": "ASCENDING"}
        if scroll_id is not None:
            body["scrollId"] = scroll_id
        if keep_alive is not None:
            body["keepAlive"] = keep_alive
        if search_flags is not None:
            body["searchFlags"] = search_flags.to_dict()

        data = self._request("POST", "/entities?action=scrollAcrossEntities", json=body)
        return ScrollResult.from_dict(data.get("value") or {})

    # Entity service

    def get_entity_v2(
        self,
        entity_type: str,
        urn,
        aspect_names: Iterable[str],
    ) -> Optional[EntityResponse]:
        """
        Raises:
            UrnParseError: If the urn is malformed, before any request is sent
        """
        parsed = urn if isinstance(urn, Urn) else Urn.create_from_string(urn)
        aspects = ",".join(sorted(aspect_names))
        path = f"/entitiesV2/{quote(str(parsed), safe='')}?aspects=List({aspects})"
        data = self._request("GET", path, allow_404=True)
        if data is None:
            return None
        data.setdefault("urn", str(parsed))
        data.setdefault("entityName", entity_type)
        return EntityResponse.from_dict(data)

    def exists(self, urn, include_soft_deleted: bool = True) -> bool:
        body = {"urn": str(urn), "includeSoftDelete": include_soft_deleted}
        data = self._request("POST", "/entities?action=exists", json=body)
        return bool(data.get("value"))

    def ingest_proposal(
        self,
        proposal: MetadataChangeProposal,
        audit_stamp: AuditStamp,
        async_: bool = False,
    ) -> None:
        # ingestProposal takes no audit stamp. GMS records the actor of the
        # authenticated token, so writes carry the system actor only when
        # DATAHUB_GMS_TOKEN belongs to it.
        logger.debug("Submitting proposal", urn=proposal.entity_urn, actor=audit_stamp.actor)
        body = {"proposal": proposal.to_dict(), "async": "true" if async_ else "false"}
        self._request("POST", "/aspects?action=ingestProposal", json=body)
