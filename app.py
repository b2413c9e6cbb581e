from flask import Flask, request, jsonify, send_file, current_app
from analyzer import analyze, AnalysisResult
from detector import clean_text, detect_agreement
from interceptor import intercept
from llm import analyze_with_fallback, ollama_status
from store import JsonStore
import io, os, uuid

BASE_DIR = os.path.dirname(os.path.abspath(__file__))

app = Flask(__name__)
app.secret_key = os.environ.get("SECRET_KEY", "clauseguard-dev-key")
app.config["DATA_PATH"] = os.environ.get("DATA_PATH", os.path.join(BASE_DIR, "data", "db.json"))

# ── In-memory result cache (for exports) ────────────────────────────────────
_cache: dict = {}
_MAX_CACHE = 50

def _cache_put(result: AnalysisResult) -> str:
    key = str(uuid.uuid4())
    if len(_cache) >= _MAX_CACHE:
        del _cache[next(iter(_cache))]
    _cache[key] = result.to_dict()
    return key

def _cache_get(key: str):
    entry = _cache.get(key)
    return AnalysisResult.from_dict(entry) if entry else None

def _store() -> JsonStore:
    return JsonStore(current_app.config["DATA_PATH"])

def _body() -> dict:
    body = request.get_json(silent=True)
    return body if isinstance(body, dict) else {}

def _flag(value, default: bool = True) -> bool:
    if isinstance(value, str):
        return value.lower() not in ("false", "off", "0", "")
    return default if value is None else bool(value)


# ── Analysis ─────────────────────────────────────────────────────────────────

@app.route("/api/health", methods=["GET"])
def api_health():
    return jsonify({"status": "ok", "version": "1.0", "llm": ollama_status()})


@app.route("/api/analyze", methods=["POST"])
def api_analyze():
    """
    Analyze agreement text and return the scored result.

    Accepts application/json → { "text": "...", "industry": "saas", "use_llm": false }
    """
    body = _body()
    text = clean_text(body.get("text") or "")
    if not text:
        return jsonify({"error": "JSON body must contain a 'text' field."}), 400

    industry = body.get("industry") or "default"
    if _flag(body.get("use_llm"), default=False):
        result, engine = analyze_with_fallback(text, industry)
    else:
        result, engine = analyze(text, industry), "keyword"

    response_data = result.to_dict()
    response_data["engine"] = engine
    response_data["key"] = _cache_put(result)
    return jsonify(response_data), 200


@app.route("/api/detect", methods=["POST"])
def api_detect():
    body = _body()
    detection = detect_agreement(
        url=body.get("url") or "",
        title=body.get("title") or "",
        text=body.get("text") or "",
        checkbox_labels=body.get("checkbox_labels") or [],
        link_texts=body.get("link_texts") or [],
    )
    return jsonify(detection.to_dict())


@app.route("/api/intercept", methods=["POST"])
def api_intercept():
    body = _body()
    kind = body.get("kind") or "button"
    if kind not in ("button", "checkbox"):
        return jsonify({"error": "kind must be 'button' or 'checkbox'."}), 400
    result = analyze(clean_text(body.get("text") or ""))
    return jsonify(intercept(body.get("label") or "", kind, result))


@app.route("/api/llm/status", methods=["GET"])
def api_llm_status():
    return jsonify(ollama_status())


# ── Export routes ────────────────────────────────────────────────────────────

EXPORTS = {
    "csv":  ("export_csv",  "text/csv", "agreement_risks.csv"),
    "pdf":  ("export_pdf",  "application/pdf", "agreement_risks.pdf"),
    "word": ("export_word",
             "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
             "agreement_risks.docx"),
}

@app.route("/export/<fmt>")
def export(fmt):
    if fmt not in EXPORTS:
        return jsonify({"error": f"Unsupported export format: {fmt}"}), 400
    result = _cache_get(request.args.get("key", ""))
    if not result:
        return jsonify({"error": "No analysis found — analyze a document first."}), 404
    import exporters
    func, mimetype, filename = EXPORTS[fmt]
    return send_file(io.BytesIO(getattr(exporters, func)(result)),
        mimetype=mimetype, as_attachment=True, download_name=filename)


# ── Leads & feedback ─────────────────────────────────────────────────────────

@app.route("/api/leads", methods=["POST"])
def api_create_lead():
    try:
        lead = _store().add_lead(_body())
    except ValueError as e:
        return jsonify({"error": str(e)}), 400
    return jsonify({
        "success": True,
        "lead_id": lead["id"],
        "message": "Your request has been submitted. A legal professional will contact you soon.",
    }), 201


@app.route("/api/leads/<lead_id>", methods=["GET"])
def api_get_lead(lead_id):
    try:
        return jsonify({"lead": _store().get_lead(lead_id)})
    except KeyError:
        return jsonify({"error": "Lead not found"}), 404


@app.route("/api/leads/<lead_id>", methods=["PATCH"])
def api_update_lead(lead_id):
    body = _body()
    try:
        _store().update_lead(lead_id, body.get("status"), body.get("partner_id"))
    except KeyError:
        return jsonify({"error": "Lead not found"}), 404
    return jsonify({"success": True})


@app.route("/api/feedback", methods=["POST"])
def api_feedback():
    try:
        feedback = _store().add_feedback(_body())
    except ValueError as e:
        return jsonify({"error": str(e)}), 400
    return jsonify({"success": True, "feedback_id": feedback["id"]}), 201


# ── Analytics ────────────────────────────────────────────────────────────────

@app.route("/api/analytics/events", methods=["POST"])
def api_analytics_events():
    try:
        received = _store().add_events(_body().get("events"))
    except ValueError as e:
        return jsonify({"error": str(e)}), 400
    return jsonify({"received": received})


@app.route("/api/analytics/summary", methods=["GET"])
def api_analytics_summary():
    return jsonify(_store().analytics_summary())


@app.route("/api/analytics/events/<event_type>", methods=["GET"])
def api_events_by_type(event_type):
    limit = request.args.get("limit", 100, type=int)
    offset = request.args.get("offset", 0, type=int)
    events = _store().events_by_type(event_type, limit=limit, offset=offset)
    return jsonify({"events": events, "total": len(events)})


@app.route("/api/analytics/daily/<int:days>", methods=["GET"])
def api_analytics_daily(days):
    return jsonify({"daily_stats": _store().daily_analytics(days)})


# ── Bug reports ──────────────────────────────────────────────────────────────

@app.route("/api/bugs", methods=["POST"])
def api_create_bug():
    try:
        report = _store().add_bug_report(_body())
    except ValueError as e:
        return jsonify({"error": str(e)}), 400
    return jsonify({
        "success": True,
        "report_id": report["id"],
        "message": "Bug report submitted successfully",
    }), 201


@app.route("/api/bugs", methods=["GET"])
def api_list_bugs():
    reports = _store().list_bug_reports(
        severity=request.args.get("severity"),
        category=request.args.get("category"),
        limit=request.args.get("limit", 50, type=int),
    )
    return jsonify({"reports": reports, "total": len(reports)})


@app.route("/api/bugs/<report_id>", methods=["GET"])
def api_get_bug(report_id):
    try:
        return jsonify(_store().get_bug_report(report_id))
    except KeyError:
        return jsonify({"error": "Bug report not found"}), 404


@app.route("/api/bugs/stats/summary", methods=["GET"])
def api_bug_stats():
    return jsonify(_store().bug_stats())


# ── Subscription ─────────────────────────────────────────────────────────────

@app.route("/api/subscription/activate", methods=["POST"])
def api_activate():
    body = _body()
    try:
        user = _store().activate_license(
            body.get("email") or "",
            plan=body.get("plan") or "monthly",
            current_period_end=body.get("current_period_end"),
        )
    except ValueError as e:
        return jsonify({"error": str(e)}), 400
    return jsonify({"success": True, "license_key": user["license_key"], "tier": user["tier"]}), 201


@app.route("/api/subscription/verify", methods=["POST"])
def api_verify():
    try:
        return jsonify(_store().verify_license(_body().get("license_key")))
    except ValueError as e:
        return jsonify({"valid": False, "error": str(e)}), 400


@app.errorhandler(500)
def internal_error(e):
    app.logger.error("Unhandled error: %s", e, exc_info=getattr(e, "original_exception", None) or e)
    return jsonify({"error": "Internal server error"}), 500


if __name__ == "__main__":
    app.run(debug=True, port=5050)
