import asyncio
import json

import httpx

from void_survey.calculators.totals import compute_totals
from void_survey.config import SurveySettings
from void_survey.models import SurveyRecord
from void_survey.remote import SubmissionLog, build_payload, docstore_endpoint, submit_and_log, submit_survey


def _payload(store):
    return build_payload(SurveyRecord(surveyor_name="Sam", property_address="1 High St"), store, compute_totals(store), 250)


def test_payload_drops_inert_rows(seeded_store):
    kit = seeded_store.items("kitchen")[0]
    seeded_store.update_by_id("kitchen", kit.id, {"quantity": "2"})
    contractor = seeded_store.items("contractor work")[0]
    seeded_store.update_by_id("contractor work", contractor.id, {"contractor": "Acme", "cost": "100", "timeEstimate": "2"})

    payload = _payload(seeded_store)
    assert payload["surveyor_name"] == "Sam"
    assert set(payload["sections"]) == {"kitchen", "contractor work"}
    assert [i["code"] for i in payload["sections"]["kitchen"]] == ["KIT001"]
    assert "id" not in payload["sections"]["kitchen"][0]
    assert payload["sections"]["contractor work"][0]["timeEstimate"] == "2"
    assert payload["totals"]["void_cost"] == "290.00"
    assert payload["submitted_at"]
    json.dumps(payload)


def _settings(**kwargs):
    return SurveySettings(
        dashboard_url="https://dash.example.test/api/surveys",
        docstore_url="https://docs.example.test/v1/",
        docstore_collection="voids",
        docstore_api_key="secret",
        **kwargs,
    )


def test_docstore_endpoint():
    assert docstore_endpoint(_settings()) == "https://docs.example.test/v1/voids"
    assert docstore_endpoint(SurveySettings()) is None


def test_submit_posts_to_both_targets(seeded_store):
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(201 if "docs" in request.url.host else 200, json={"ok": True})

    payload = _payload(seeded_store)
    results = asyncio.run(submit_survey(payload, _settings(), transport=httpx.MockTransport(handler)))

    assert [(r.target, r.ok, r.status_code) for r in results] == [("dashboard", True, 200), ("docstore", True, 201)]
    by_host = {r.url.host: r for r in seen}
    assert json.loads(by_host["dash.example.test"].content)["property_address"] == "1 High St"
    assert "authorization" not in by_host["dash.example.test"].headers
    assert str(by_host["docs.example.test"].url) == "https://docs.example.test/v1/voids"
    assert by_host["docs.example.test"].headers["authorization"] == "Bearer secret"


def test_failures_are_reported_not_raised(seeded_store):
    def handler(request: httpx.Request) -> httpx.Response:
        if "docs" in request.url.host:
            raise httpx.ConnectError("connection refused", request=request)
        return httpx.Response(500)

    results = asyncio.run(submit_survey(_payload(seeded_store), _settings(), transport=httpx.MockTransport(handler)))
    dashboard, docstore = results
    assert not dashboard.ok and dashboard.status_code == 500
    assert not docstore.ok and "connection refused" in docstore.error


def test_unconfigured_targets_are_skipped(seeded_store):
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(200)

    results = asyncio.run(submit_survey(_payload(seeded_store), SurveySettings(), transport=httpx.MockTransport(handler)))
    assert all(r.skipped and not r.ok for r in results)
    assert calls == []


def test_submission_log_records_status(seeded_store):
    log = SubmissionLog()
    assert log.status() == {"finished_at": None, "ok": None, "results": []}

    transport = httpx.MockTransport(lambda request: httpx.Response(200))
    asyncio.run(submit_and_log(_payload(seeded_store), _settings(dashboard_api_key="dash"), log, transport=transport))
    status = log.status()
    assert status["ok"] is True
    assert status["finished_at"]
    assert [r["target"] for r in status["results"]] == ["dashboard", "docstore"]
