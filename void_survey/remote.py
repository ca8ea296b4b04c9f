"""Best-effort submission of a finished survey.

One JSON POST to the dashboard ingestion endpoint and one document write to
the hosted document store, run concurrently, no retries. Failures are logged
and reported as results; they never propagate to the caller, so the local
export is never held up by the network.
"""

from __future__ import annotations

import asyncio
import threading
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import httpx
import structlog
from pydantic import BaseModel

from .calculators.totals import is_inert
from .catalog import SECTION_ORDER
from .config import SurveySettings
from .models import SurveyRecord, Totals
from .store import ItemStore


log = structlog.get_logger(__name__)

DASHBOARD = "dashboard"
DOCSTORE = "docstore"


class SubmissionResult(BaseModel):
    target: str
    ok: bool = False
    skipped: bool = False
    status_code: Optional[int] = None
    error: Optional[str] = None


def build_payload(
    record: SurveyRecord,
    store: ItemStore,
    totals: Totals,
    lorry_default_cost=None,
) -> Dict[str, Any]:
    """Survey as JSON with inert rows (zero quantity, untouched templates) dropped."""
    kwargs = {} if lorry_default_cost is None else {"lorry_default_cost": lorry_default_cost}
    sections: Dict[str, List[Dict[str, Any]]] = {}
    for section in SECTION_ORDER:
        kept = [
            item.model_dump(by_alias=True, exclude={"id"})
            for item in store.items(section)
            if not is_inert(section, item, **kwargs)
        ]
        if kept:
            sections[section] = kept
    return {
        **record.model_dump(mode="json"),
        "sections": sections,
        "totals": totals.model_dump(mode="json"),
        "submitted_at": datetime.now(timezone.utc).isoformat(),
    }


def _headers(api_key: Optional[str]) -> Dict[str, str]:
    return {"Authorization": f"Bearer {api_key}"} if api_key else {}


async def _post(client: httpx.AsyncClient, target: str, url: Optional[str], payload: Dict[str, Any], api_key: Optional[str]) -> SubmissionResult:
    if not url:
        return SubmissionResult(target=target, skipped=True)
    try:
        resp = await client.post(url, json=payload, headers=_headers(api_key))
        resp.raise_for_status()
    except httpx.HTTPStatusError as e:
        log.warning("submission_failed", target=target, status_code=e.response.status_code)
        return SubmissionResult(target=target, status_code=e.response.status_code, error=str(e))
    except httpx.HTTPError as e:
        log.warning("submission_failed", target=target, error=str(e))
        return SubmissionResult(target=target, error=str(e))
    log.info("submission_sent", target=target, status_code=resp.status_code)
    return SubmissionResult(target=target, ok=True, status_code=resp.status_code)


def docstore_endpoint(settings: SurveySettings) -> Optional[str]:
    if not settings.docstore_url:
        return None
    return f"{settings.docstore_url.rstrip('/')}/{settings.docstore_collection}"


async def submit_survey(
    payload: Dict[str, Any],
    settings: SurveySettings,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> List[SubmissionResult]:
    client_kwargs: Dict[str, Any] = {"transport": transport}
    if settings.submit_timeout is not None:
        client_kwargs["timeout"] = settings.submit_timeout
    async with httpx.AsyncClient(**client_kwargs) as client:
        results = await asyncio.gather(
            _post(client, DASHBOARD, settings.dashboard_url, payload, settings.dashboard_api_key),
            _post(client, DOCSTORE, docstore_endpoint(settings), payload, settings.docstore_api_key),
        )
    return list(results)


class SubmissionLog:
    """Latest submission results, for the status indicator."""

    def __init__(self):
        self._lock = threading.Lock()
        self._results: List[SubmissionResult] = []
        self.finished_at: Optional[str] = None

    def record(self, results: List[SubmissionResult]) -> None:
        with self._lock:
            self._results = list(results)
            self.finished_at = datetime.now(timezone.utc).isoformat()

    @property
    def results(self) -> List[SubmissionResult]:
        with self._lock:
            return list(self._results)

    def status(self) -> Dict[str, Any]:
        results = self.results
        return {
            "finished_at": self.finished_at,
            "ok": all(r.ok or r.skipped for r in results) if results else None,
            "results": [r.model_dump() for r in results],
        }


async def submit_and_log(
    payload: Dict[str, Any],
    settings: SurveySettings,
    submissions: SubmissionLog,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> List[SubmissionResult]:
    results = await submit_survey(payload, settings, transport=transport)
    submissions.record(results)
    return results
