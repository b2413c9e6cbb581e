import json
import time

import pytest

from store import DAY_MS, JsonStore

LEAD = {"name": "Ada", "email": "ada@example.com", "concern": "arbitration clause"}


def test_lead_lifecycle(store):
    lead = store.add_lead(LEAD)
    assert lead["status"] == "new"
    assert lead["contact_method"] == "email"
    assert store.get_lead(lead["id"])["email"] == "ada@example.com"

    updated = store.update_lead(lead["id"], "assigned", "partner-1")
    assert (updated["status"], updated["partner_id"]) == ("assigned", "partner-1")
    assert store.events_by_type("lead_submitted")[0]["id"] == 1


@pytest.mark.parametrize("payload", [
    {"name": "Ada", "email": "ada@example.com"},
    {"name": "Ada", "email": "not-an-email", "concern": "x"},
])
def test_invalid_leads_rejected(store, payload):
    with pytest.raises(ValueError):
        store.add_lead(payload)


def test_unknown_lead(store):
    with pytest.raises(KeyError):
        store.get_lead("missing")
    with pytest.raises(KeyError):
        store.update_lead("missing", "closed", None)


def test_feedback_requires_message(store):
    with pytest.raises(ValueError):
        store.add_feedback({"type": "bug"})
    fb = store.add_feedback({"message": "Great tool"})
    assert fb["type"] == "general"


def test_file_is_plain_json(tmp_path):
    path = tmp_path / "nested" / "db.json"
    JsonStore(str(path)).add_feedback({"message": "hi"})
    data = json.loads(path.read_text())
    assert set(data) == {"users", "subscriptions", "leads", "feedback", "events"}
    assert data["events"][0]["event_type"] == "feedback_submitted"


def test_analytics_summary(store):
    assert store.add_events([
        {"event_type": "scan_completed", "session_id": "s1"},
        {"event_type": "scan_completed", "session_id": "s2", "metadata": {"risks": 3}},
        {"event_type": "lawyer_referral_submitted", "session_id": "s1"},
        {"event_type": "custom_thing"},
    ]) == 4

    summary = store.analytics_summary()
    assert summary["total"]["scans"] == 2
    assert summary["total"]["lawyer_referrals"] == 1
    assert summary["last_24_hours"]["scans"] == 2
    assert summary["events_by_type"]["custom_thing"] == 1
    assert summary["unique_sessions"] == 2

    later = store.analytics_summary(now=int(time.time() * 1000) + 2 * DAY_MS)
    assert later["last_24_hours"]["scans"] == 0
    assert later["last_week"]["scans"] == 2


def test_events_need_a_list(store):
    with pytest.raises(ValueError):
        store.add_events({"event_type": "scan_completed"})


def test_event_paging(store):
    store.add_events([{"event_type": "scan_completed"} for _ in range(5)])
    assert len(store.events_by_type("scan_completed", limit=2, offset=4)) == 1


def test_license_activation_and_expiry(store):
    now = int(time.time())
    user = store.activate_license("ada@example.com", current_period_end=now + 3600)
    key = user["license_key"]

    ok = store.verify_license(key, now=now)
    assert ok["valid"] and ok["email"] == "ada@example.com"

    expired = store.verify_license(key, now=now + 7200)
    assert expired == {"valid": False, "error": "Subscription expired",
                       "expired_at": expired["expired_at"]}

    # re-activation keeps the key
    assert store.activate_license("ada@example.com")["license_key"] == key
    assert store.verify_license(key)["expires_at"] is None


def test_unknown_license(store):
    assert store.verify_license("PYN-NOPE") == {"valid": False, "error": "Invalid license key"}
    with pytest.raises(ValueError):
        store.verify_license("")


@pytest.mark.parametrize("payload", [
    {"name": "Ada", "email": 5, "concern": "x"},
    {"name": ["Ada"], "email": "ada@example.com", "concern": "x"},
])
def test_leads_with_wrong_types_rejected(store, payload):
    with pytest.raises(ValueError):
        store.add_lead(payload)


@pytest.mark.parametrize("event", [
    {"event_type": "scan_completed", "metadata": [1, 2]},
    {"event_type": ["scan_completed"]},
])
def test_malformed_events_rejected(store, event):
    with pytest.raises(ValueError):
        store.add_events([event])
    assert store.events_by_type("scan_completed") == []


@pytest.mark.parametrize("period_end", ["2030-01-01", 1.5, True])
def test_period_end_must_be_epoch_seconds(store, period_end):
    with pytest.raises(ValueError):
        store.activate_license("ada@example.com", current_period_end=period_end)
    assert store._read()["subscriptions"] == []


def test_license_email_must_be_text(store):
    with pytest.raises(ValueError):
        store.activate_license(5)


def test_daily_analytics(store):
    now = int(time.time() * 1000)
    store.add_events([
        {"event_type": "scan_completed"},
        {"event_type": "scan_completed"},
        {"event_type": "extension_installed"},
        {"event_type": "custom_thing"},
    ])

    daily = store.daily_analytics(7)
    assert len(daily) == 7
    today = daily[time.strftime("%Y-%m-%d", time.gmtime(now / 1000))]
    assert today == {"scans": 2, "detections": 0, "referrals": 0, "installs": 1}

    assert len(store.daily_analytics(0)) == 30
    assert len(store.daily_analytics(365)) == 90
    later = store.daily_analytics(3, now=now + 10 * DAY_MS)
    assert all(sum(day.values()) == 0 for day in later.values())


BUG = {
    "title": "Scan never finishes",
    "description": "Spinner keeps going on long pages",
    "severity": "high",
    "category": "performance",
    "diagnostics": {"page_url": "https://example.com/terms", "platform": "linux",
                    "recent_errors": ["TypeError"]},
}


def test_bug_report_lifecycle(store):
    report = store.add_bug_report(BUG)
    assert report["title"] == BUG["title"]
    assert report["page_url"] == "https://example.com/terms"
    assert store.get_bug_report(report["id"]) == report

    store.add_bug_report({"title": "Typo", "description": "In the modal", "category": "ui"})
    store.add_feedback({"message": "Great tool"})

    reports = store.list_bug_reports()
    assert {r["title"] for r in reports} == {"Typo", "Scan never finishes"}
    assert [r["title"] for r in store.list_bug_reports(severity="high")] == ["Scan never finishes"]
    assert [r["title"] for r in store.list_bug_reports(category="ui")] == ["Typo"]
    assert len(store.list_bug_reports(limit=1)) == 1

    event = json.loads(store.events_by_type("bug_report_submitted")[0]["data"])
    assert event["report_id"] == report["id"] and event["has_errors"] is True


def test_bug_report_validation(store):
    with pytest.raises(ValueError):
        store.add_bug_report({"title": "No description"})
    with pytest.raises(ValueError):
        store.add_bug_report({**BUG, "severity": "apocalyptic"})
    with pytest.raises(ValueError):
        store.add_bug_report({**BUG, "diagnostics": "oops"})
    with pytest.raises(KeyError):
        store.get_bug_report("missing")


def test_plain_feedback_is_not_a_bug_report(store):
    fb = store.add_feedback({"message": "hello"})
    with pytest.raises(KeyError):
        store.get_bug_report(fb["id"])


def test_bug_stats(store):
    now = int(time.time() * 1000)
    store.add_bug_report(BUG)
    store.add_bug_report({"title": "Crash", "description": "On load", "severity": "critical",
                          "category": "crash"})
    store.add_feedback({"message": "free text bug", "type": "bug"})

    stats = store.bug_stats()
    assert stats["total"] == 3
    assert stats["by_severity"] == {"critical": 1, "high": 1, "medium": 0, "low": 0}
    assert stats["by_category"] == {"performance": 1, "crash": 1}
    assert stats["last_7_days"] == 3

    later = store.bug_stats(now=now + 10 * DAY_MS)
    assert (later["last_7_days"], later["last_30_days"]) == (0, 3)
