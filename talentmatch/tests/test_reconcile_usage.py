"""Usage reconciliation job."""
from datetime import datetime, timedelta, timezone

from talentmatch.features.storage.memory import build_memory_stores
from talentmatch.features.usage.reconcile import reconcile_usage
from talentmatch.workers import reconcile_usage as worker


NOW = datetime(2026, 4, 10, 18, 0, tzinfo=timezone.utc)
MORNING = datetime(2026, 4, 10, 8, 0, tzinfo=timezone.utc)


def add_analyses(stores, user_id, count, created_at):
    for _ in range(count):
        stores.analyses.create_analysis(
            user_id,
            {
                "job_title": "Engineer",
                "company_name": "Acme",
                "job_description": "job description text",
                "resume_text": "resume text here",
                "outreach_tone": "casual",
                "match_score": 70,
                "technical_score": 70,
                "experience_score": 70,
                "domain_score": 70,
                "outreach_message": "hello",
                "created_at": created_at,
            },
        )


def test_consistent_users_report_nothing(stores, make_user):
    user = make_user(usage_count=2, usage_reset_date=MORNING)
    add_analyses(stores, user.user_id, 2, MORNING + timedelta(hours=1))

    result = reconcile_usage(stores, now=NOW)
    assert result["issues_found"] == 0
    assert result["corrections_applied"] == 0


def test_over_count_is_reported_then_fixed(stores, make_user):
    user = make_user(usage_count=3, usage_reset_date=MORNING)
    add_analyses(stores, user.user_id, 1, MORNING)
    # Yesterday's record is outside the window
    add_analyses(stores, user.user_id, 1, MORNING - timedelta(days=1))

    dry_run = reconcile_usage(stores, now=NOW)
    assert dry_run["issues"] == [{"type": "over_count", "user_id": user.user_id, "usage_count": 3, "recorded": 1}]
    assert stores.users.get_user(user.user_id).usage_count == 3

    fixed = reconcile_usage(stores, now=NOW, fix=True)
    assert fixed["corrections_applied"] == 1
    assert stores.users.get_user(user.user_id).usage_count == 1


def test_under_count_is_reported_but_never_raised(stores, make_user):
    user = make_user(usage_count=1, usage_reset_date=MORNING)
    add_analyses(stores, user.user_id, 2, MORNING + timedelta(minutes=5))

    result = reconcile_usage(stores, now=NOW, fix=True)
    assert result["issues"][0]["type"] == "under_count"
    assert result["corrections_applied"] == 0
    assert stores.users.get_user(user.user_id).usage_count == 1


def test_stale_window_is_skipped(stores, make_user):
    make_user(usage_count=3, usage_reset_date=MORNING - timedelta(days=2))
    assert reconcile_usage(stores, now=NOW)["issues_found"] == 0


def test_fix_respects_limit(stores, make_user):
    for _ in range(3):
        make_user(usage_count=2, usage_reset_date=MORNING)
    result = reconcile_usage(stores, now=NOW, fix=True, limit=2)
    assert result["issues_found"] == 3
    assert result["corrections_applied"] == 2


def test_worker_main_prints_json(monkeypatch, capsys):
    stores = build_memory_stores()
    monkeypatch.setattr(worker, "build_stores", lambda cfg: stores)
    monkeypatch.setattr(worker, "configure_logging", lambda env: None)

    result = worker.main(["--fix", "--limit", "5"])

    assert result["issues_found"] == 0
    assert '"corrections_applied": 0' in capsys.readouterr().out


def test_correction_skipped_when_ledger_moved(stores, make_user, monkeypatch):
    user = make_user(usage_count=3, usage_reset_date=MORNING)
    add_analyses(stores, user.user_id, 1, MORNING)
    # A server commit lands between the count and the fix
    monkeypatch.setattr(stores.users, "compare_and_set_usage", lambda user_id, **fields: False)

    result = reconcile_usage(stores, now=NOW, fix=True)

    assert result["issues_found"] == 1
    assert result["corrections_applied"] == 0
    assert stores.users.get_user(user.user_id).usage_count == 3
