"""Analyze/history/stats/usage endpoints end to end with a fake engine."""
from datetime import datetime, timedelta, timezone


ANALYZE = {
    "companyName": "Acme",
    "jobTitle": "Backend Engineer",
    "jobDescription": "We need a Python engineer with SQL experience.",
    "resumeText": "Five years of Python, SQL and API design.",
    "outreachTone": "professional",
    "candidateName": "Sam",
    "candidateEmail": "sam@example.com",
}


def test_analyze_requires_auth(client):
    resp = client.post("/api/analyze", json=ANALYZE)
    assert resp.status_code == 401


def test_analyze_returns_scores_and_message(client, auth_headers):
    _, headers = auth_headers
    resp = client.post("/api/analyze", json=ANALYZE, headers=headers)
    assert resp.status_code == 200
    body = resp.json()
    assert body["success"] is True
    analysis = body["analysis"]
    assert analysis["overallScore"] == 80
    assert analysis["matchingSkills"] == ["python", "sql"]
    assert analysis["missingSkills"] == ["kubernetes"]
    assert analysis["outreachMessage"].startswith("Hi Sam,")
    assert analysis["improvementSuggestions"] == ["Ship a side project"]
    assert analysis["id"]
    assert analysis["timestamp"]


def test_fourth_free_analysis_is_429(client, auth_headers):
    _, headers = auth_headers
    for _ in range(3):
        assert client.post("/api/analyze", json=ANALYZE, headers=headers).status_code == 200

    resp = client.post("/api/analyze", json=ANALYZE, headers=headers)
    assert resp.status_code == 429
    error = resp.json()["error"]
    assert error["code"] == "quota_exceeded"
    assert error["plan"] == "free"
    assert error["quota"] == "3"
    assert "free plan limit of 3" in error["message"]


def test_scoring_failure_is_503_and_not_counted(client, auth_headers, engine, stores):
    user_id, headers = auth_headers
    engine.fail = True
    resp = client.post("/api/analyze", json=ANALYZE, headers=headers)
    assert resp.status_code == 503
    assert resp.json()["error"]["message"] == "Analysis failed. Please try again."
    assert stores.users.get_user(user_id).usage_count == 0
    assert client.get("/api/analyses", headers=headers).json() == {"analyses": []}


def test_invalid_request_is_400_before_quota(client, auth_headers, engine):
    _, headers = auth_headers
    resp = client.post("/api/analyze", json=dict(ANALYZE, jobDescription="short"), headers=headers)
    assert resp.status_code == 400
    assert resp.json()["error"]["code"] == "validation_error"
    assert engine.calls == []


def test_invalid_tone_is_400(client, auth_headers):
    _, headers = auth_headers
    resp = client.post("/api/analyze", json=dict(ANALYZE, outreachTone="shouty"), headers=headers)
    assert resp.status_code == 400


def test_history_newest_first_and_limit(client, auth_headers):
    _, headers = auth_headers
    ids = [client.post("/api/analyze", json=ANALYZE, headers=headers).json()["analysis"]["id"] for _ in range(2)]

    listed = client.get("/api/analyses", headers=headers).json()["analyses"]
    assert [a["id"] for a in listed] == list(reversed(ids))
    assert listed[0]["candidateEmail"] == "sam@example.com"

    limited = client.get("/api/analyses", params={"limit": 1}, headers=headers).json()["analyses"]
    assert len(limited) == 1


def test_analysis_detail_is_owner_only(client, auth_headers, make_user, stores):
    _, headers = auth_headers
    analysis_id = client.post("/api/analyze", json=ANALYZE, headers=headers).json()["analysis"]["id"]

    resp = client.get(f"/api/analyses/{analysis_id}", headers=headers)
    assert resp.status_code == 200
    assert resp.json()["analysis"]["companyName"] == "Acme"

    other = client.post(
        "/api/auth/register",
        json={"email": "other@example.com", "password": "secret123", "firstName": "Oz", "lastName": "Other"},
    ).json()
    other_headers = {"Authorization": f"Bearer {other['token']}"}
    resp = client.get(f"/api/analyses/{analysis_id}", headers=other_headers)
    assert resp.status_code == 404
    assert resp.json()["error"]["message"] == "Analysis not found"


def test_stats_after_two_analyses(client, auth_headers):
    _, headers = auth_headers
    client.post("/api/analyze", json=ANALYZE, headers=headers)
    client.post("/api/analyze", json=dict(ANALYZE, candidateEmail="lee@example.com"), headers=headers)

    stats = client.get("/api/stats", headers=headers).json()["stats"]
    assert stats == {"monthlyAnalyses": 2, "avgMatchScore": 80, "messagesGenerated": 2, "activeCandidates": 2}


def test_usage_reports_remaining(client, auth_headers):
    _, headers = auth_headers
    client.post("/api/analyze", json=ANALYZE, headers=headers)

    usage = client.get("/api/usage", headers=headers).json()
    assert usage["plan"] == "free"
    assert usage["quota"] == "3"
    assert usage["usageCount"] == 1
    assert usage["remaining"] == 2


def test_usage_stale_window_reads_as_zero(client, auth_headers, stores):
    user_id, headers = auth_headers
    stores.users.update_user(
        user_id, usage_count=3, usage_reset_date=datetime.now(timezone.utc) - timedelta(days=2)
    )
    usage = client.get("/api/usage", headers=headers).json()
    assert usage["usageCount"] == 0
    assert usage["remaining"] == 3


def test_usage_pro_is_unlimited(client, auth_headers, stores):
    user_id, headers = auth_headers
    stores.users.update_user(user_id, plan="pro")
    usage = client.get("/api/usage", headers=headers).json()
    assert usage["quota"] == "unlimited"
    assert usage["remaining"] == "unlimited"


def test_upload_pdf_not_implemented(client, auth_headers):
    _, headers = auth_headers
    resp = client.post("/api/upload-pdf", headers=headers)
    assert resp.status_code == 501
    assert resp.json()["error"]["code"] == "not_implemented"
