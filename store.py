"""
store.py — Flat JSON-file storage for the companion backend.

Holds users, subscriptions, leads (lawyer referrals), feedback (bug reports
are feedback of type `bug`) and anonymized analytics events. Every call
re-reads the file and writes it back; there is no locking and no migration
step.
"""

import json
import os
import time
import uuid
import logging
from datetime import datetime, timedelta, timezone
from typing import List, Optional

logger = logging.getLogger(__name__)

COLLECTIONS = ("users", "subscriptions", "leads", "feedback", "events")

DAY_MS = 24 * 60 * 60 * 1000

# Event types counted in the analytics summary
SUMMARY_TOTALS = {
    "extension_installed":       "installs",
    "scan_completed":            "scans",
    "agreement_detected":        "agreements_detected",
    "lawyer_referral_submitted": "lawyer_referrals",
    "upgrade_completed":         "upgrades",
    "feedback_submitted":        "feedback_submitted",
}
WINDOWED = {"scan_completed": "scans", "lawyer_referral_submitted": "lawyer_referrals"}
WINDOWS = (("last_24_hours", 1), ("last_week", 7), ("last_month", 30))

# Per-day counters for the daily breakdown
DAILY_COUNTERS = {
    "scan_completed":            "scans",
    "agreement_detected":        "detections",
    "lawyer_referral_submitted": "referrals",
    "extension_installed":       "installs",
}
MAX_DAILY_DAYS = 90

BUG_SEVERITIES = ("critical", "high", "medium", "low")
BUG_CATEGORIES = ("detection", "analysis", "ui", "performance", "crash", "other")
BUG_FIELDS = ("title", "description", "steps", "expected", "actual", "severity", "category")


def _now_ms() -> int:
    return int(time.time() * 1000)

def _iso(seconds: int) -> str:
    return datetime.fromtimestamp(seconds, tz=timezone.utc).isoformat()

def _day(ms: int) -> str:
    return datetime.fromtimestamp(ms / 1000, tz=timezone.utc).date().isoformat()


class JsonStore:
    def __init__(self, path: str):
        self.path = path

    # ── File access ──────────────────────────────────────────────────────────

    def _read(self) -> dict:
        data = {}
        if os.path.exists(self.path):
            with open(self.path, encoding="utf-8") as fh:
                data = json.load(fh) or {}
        for name in COLLECTIONS:
            data.setdefault(name, [])
        return data

    def _write(self, data: dict) -> None:
        folder = os.path.dirname(self.path)
        if folder:
            os.makedirs(folder, exist_ok=True)
        with open(self.path, "w", encoding="utf-8") as fh:
            json.dump(data, fh, indent=2)

    @staticmethod
    def _log_event(data: dict, event_type: str, payload: dict, now: int) -> None:
        data["events"].append({
            "id":         len(data["events"]) + 1,
            "event_type": event_type,
            "data":       json.dumps(payload),
            "created_at": now,
        })

    # ── Leads ────────────────────────────────────────────────────────────────

    def add_lead(self, payload: dict) -> dict:
        name, email, concern = (payload.get(k) for k in ("name", "email", "concern"))
        if not name or not email or not concern:
            raise ValueError("Name, email, and concern are required")
        if not all(isinstance(v, str) for v in (name, email, concern)):
            raise ValueError("Name, email, and concern must be strings")
        if "@" not in email:
            raise ValueError("Invalid email address")

        data, now = self._read(), _now_ms()
        lead = {
            "id":              str(uuid.uuid4()),
            "name":            name,
            "email":           email,
            "phone":           payload.get("phone"),
            "concern":         concern,
            "message":         payload.get("message"),
            "contact_method":  payload.get("contact_method") or "email",
            "agreement_url":   payload.get("agreement_url"),
            "agreement_title": payload.get("agreement_title"),
            "risk_summary":    payload.get("risk_summary"),
            "risks":           payload.get("risks") or [],
            "status":          "new",
            "partner_id":      None,
            "created_at":      now,
            "updated_at":      now,
        }
        data["leads"].append(lead)
        self._log_event(data, "lead_submitted", {"lead_id": lead["id"], "concern": concern}, now)
        self._write(data)
        logger.info("New lead submitted: %s", lead["id"])
        return lead

    def get_lead(self, lead_id: str) -> dict:
        for lead in self._read()["leads"]:
            if lead["id"] == lead_id:
                return lead
        raise KeyError(lead_id)

    def update_lead(self, lead_id: str, status: Optional[str], partner_id: Optional[str]) -> dict:
        data = self._read()
        for lead in data["leads"]:
            if lead["id"] == lead_id:
                lead.update(status=status, partner_id=partner_id, updated_at=_now_ms())
                self._write(data)
                return lead
        raise KeyError(lead_id)

    # ── Feedback ─────────────────────────────────────────────────────────────

    def add_feedback(self, payload: dict) -> dict:
        if not payload.get("message"):
            raise ValueError("Message is required")

        data, now = self._read(), _now_ms()
        feedback = {
            "id":         str(uuid.uuid4()),
            "user_id":    payload.get("user_id"),
            "type":       payload.get("type") or "general",
            "message":    payload["message"],
            "page_url":   payload.get("page_url"),
            "created_at": now,
        }
        data["feedback"].append(feedback)
        self._log_event(data, "feedback_submitted",
                        {"feedback_id": feedback["id"], "type": feedback["type"]}, now)
        self._write(data)
        logger.info("Feedback submitted: %s", feedback["id"])
        return feedback

    # ── Analytics ────────────────────────────────────────────────────────────

    def add_events(self, events) -> int:
        if not isinstance(events, list):
            raise ValueError("Events array required")

        data, now = self._read(), _now_ms()
        for event in events:
            if not isinstance(event, dict) or not isinstance(event.get("event_type"), str) \
                    or not event["event_type"]:
                raise ValueError("Each event needs an event_type")
            metadata = event.get("metadata") or {}
            if not isinstance(metadata, dict):
                raise ValueError("Event metadata must be an object")
            payload = {"session_id": event.get("session_id"), "timestamp": event.get("timestamp")}
            payload.update(metadata)
            self._log_event(data, event["event_type"], payload, now)
        self._write(data)
        return len(events)

    def events_by_type(self, event_type: str, limit: int = 100, offset: int = 0) -> List[dict]:
        matching = [e for e in self._read()["events"] if e["event_type"] == event_type]
        return matching[offset:offset + limit]

    def analytics_summary(self, now: Optional[int] = None) -> dict:
        now = _now_ms() if now is None else now
        summary = {
            "total": {name: 0 for name in SUMMARY_TOTALS.values()},
            **{window: {name: 0 for name in WINDOWED.values()} for window, _ in WINDOWS},
            "events_by_type": {},
        }
        sessions = set()

        for event in self._read()["events"]:
            kind = event["event_type"]
            summary["events_by_type"][kind] = summary["events_by_type"].get(kind, 0) + 1
            try:
                session = json.loads(event.get("data") or "{}").get("session_id")
            except (json.JSONDecodeError, AttributeError):
                session = None
            if isinstance(session, str) and session:
                sessions.add(session)
            if kind in SUMMARY_TOTALS:
                summary["total"][SUMMARY_TOTALS[kind]] += 1
            if kind in WINDOWED:
                for window, days in WINDOWS:
                    if event["created_at"] > now - days * DAY_MS:
                        summary[window][WINDOWED[kind]] += 1

        summary["unique_sessions"] = len(sessions)
        return summary

    def daily_analytics(self, days: int = 30, now: Optional[int] = None) -> dict:
        """Per-day counters (UTC dates) for the last `days` days, newest first."""
        days = min(days or 30, MAX_DAILY_DAYS)
        now = _now_ms() if now is None else now
        today = datetime.fromtimestamp(now / 1000, tz=timezone.utc)
        daily = {
            (today - timedelta(days=i)).date().isoformat(): {name: 0 for name in DAILY_COUNTERS.values()}
            for i in range(days)
        }

        cutoff = now - days * DAY_MS
        for event in self._read()["events"]:
            if event["created_at"] < cutoff or event["event_type"] not in DAILY_COUNTERS:
                continue
            bucket = daily.get(_day(event["created_at"]))
            if bucket is not None:
                bucket[DAILY_COUNTERS[event["event_type"]]] += 1
        return daily

    # ── Bug reports ──────────────────────────────────────────────────────────

    def add_bug_report(self, report: dict) -> dict:
        """Stored as `bug` feedback whose message is the report fields as JSON."""
        title, description = report.get("title"), report.get("description")
        if not title or not description:
            raise ValueError("Title and description are required")
        if not isinstance(title, str) or not isinstance(description, str):
            raise ValueError("Title and description must be strings")
        severity = report.get("severity") or "medium"
        if severity not in BUG_SEVERITIES:
            raise ValueError(f"severity must be one of {', '.join(BUG_SEVERITIES)}")
        category = report.get("category") or "other"
        if category not in BUG_CATEGORIES:
            raise ValueError(f"category must be one of {', '.join(BUG_CATEGORIES)}")
        diagnostics = report.get("diagnostics") or {}
        if not isinstance(diagnostics, dict):
            raise ValueError("diagnostics must be an object")

        fields = {k: report.get(k) for k in BUG_FIELDS}
        fields.update(severity=severity, category=category)

        data, now = self._read(), _now_ms()
        feedback = {
            "id":         str(uuid.uuid4()),
            "user_id":    None,
            "type":       "bug",
            "message":    json.dumps(fields),
            "page_url":   diagnostics.get("page_url"),
            "created_at": now,
        }
        data["feedback"].append(feedback)
        self._log_event(data, "bug_report_submitted", {
            "report_id":         feedback["id"],
            "severity":          severity,
            "category":          category,
            "extension_version": diagnostics.get("extension_version"),
            "platform":          diagnostics.get("platform"),
            "has_errors":        bool(diagnostics.get("recent_errors")),
        }, now)
        self._write(data)
        logger.info("Bug report submitted: %s - %s (%s)", feedback["id"], title, severity)
        return self._bug_view(feedback)

    @staticmethod
    def _bug_view(feedback: dict) -> dict:
        try:
            fields = json.loads(feedback["message"])
        except (TypeError, json.JSONDecodeError):
            fields = None
        if not isinstance(fields, dict):
            fields = {"message": feedback["message"]}
        return {**fields, "id": feedback["id"],
                "page_url": feedback.get("page_url"), "created_at": feedback["created_at"]}

    def _bug_reports(self) -> List[dict]:
        return [self._bug_view(f) for f in self._read()["feedback"] if f.get("type") == "bug"]

    def list_bug_reports(self, severity: Optional[str] = None, category: Optional[str] = None,
                         limit: int = 50) -> List[dict]:
        reports = self._bug_reports()
        if severity:
            reports = [r for r in reports if r.get("severity") == severity]
        if category:
            reports = [r for r in reports if r.get("category") == category]
        reports.sort(key=lambda r: r["created_at"], reverse=True)
        return reports[:max(limit, 0)]

    def get_bug_report(self, report_id: str) -> dict:
        for feedback in self._read()["feedback"]:
            if feedback["id"] == report_id and feedback.get("type") == "bug":
                return self._bug_view(feedback)
        raise KeyError(report_id)

    def bug_stats(self, now: Optional[int] = None) -> dict:
        now = _now_ms() if now is None else now
        stats = {
            "total":        0,
            "by_severity":  {name: 0 for name in BUG_SEVERITIES},
            "by_category":  {},
            "last_7_days":  0,
            "last_30_days": 0,
        }
        reports = self._bug_reports()
        stats["total"] = len(reports)
        for report in reports:
            severity, category = report.get("severity"), report.get("category")
            if isinstance(severity, str):
                stats["by_severity"][severity] = stats["by_severity"].get(severity, 0) + 1
            if isinstance(category, str):
                stats["by_category"][category] = stats["by_category"].get(category, 0) + 1
            if report["created_at"] > now - 7 * DAY_MS:
                stats["last_7_days"] += 1
            if report["created_at"] > now - 30 * DAY_MS:
                stats["last_30_days"] += 1
        return stats

    # ── Licenses ─────────────────────────────────────────────────────────────

    def activate_license(self, email: str, plan: str = "monthly",
                         current_period_end: Optional[int] = None) -> dict:
        """Create or refresh a paid user; current_period_end is in epoch seconds."""
        if not isinstance(email, str) or "@" not in email:
            raise ValueError("Valid email required")
        if current_period_end is not None and (
                isinstance(current_period_end, bool) or not isinstance(current_period_end, int)):
            raise ValueError("current_period_end must be epoch seconds")

        data, now = self._read(), _now_ms()
        user = next((u for u in data["users"] if u["email"] == email), None)
        if user is None:
            user = {"id": str(uuid.uuid4()), "email": email, "created_at": now}
            data["users"].append(user)
        user.update(
            tier="paid",
            license_key=user.get("license_key") or f"PYN-{uuid.uuid4().hex[:16].upper()}",
            updated_at=now,
        )

        sub = next((s for s in data["subscriptions"] if s["user_id"] == user["id"]), None)
        if sub is None:
            sub = {"id": str(uuid.uuid4()), "user_id": user["id"], "created_at": now}
            data["subscriptions"].append(sub)
        sub.update(status="active", plan=plan, current_period_end=current_period_end)

        self._write(data)
        logger.info("License activated for user %s", user["id"])
        return user

    def verify_license(self, license_key: str, now: Optional[int] = None) -> dict:
        if not license_key or not isinstance(license_key, str):
            raise ValueError("License key required")

        data = self._read()
        user = next((u for u in data["users"] if u.get("license_key") == license_key), None)
        if user is None:
            return {"valid": False, "error": "Invalid license key"}

        now = int(time.time()) if now is None else now
        sub = next((s for s in data["subscriptions"] if s["user_id"] == user["id"]), None)
        period_end = sub.get("current_period_end") if sub else None
        if period_end and period_end < now:
            return {"valid": False, "error": "Subscription expired", "expired_at": _iso(period_end)}

        return {
            "valid":      True,
            "tier":       "paid",
            "email":      user["email"],
            "expires_at": _iso(period_end) if period_end else None,
        }
