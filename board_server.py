#!/usr/bin/env python3
"""
Hireboard Server
----------------
JSON API over one recruiting board. The drag layer and the UI post their
events here; every response carries the board state after the local
(optimistic) update.

Usage:
    python board_server.py --port 3000 --db ~/.local/share/hireboard/board.db

API:
    GET    /api/board                → full board: stages, columns, filter, sort, selection
    GET    /api/stats                → dashboard numbers
    POST   /api/applicants           → { name, stage, registration_type }
    PATCH  /api/applicants/<id>      → { name?, registration_type?, applied_date?, evaluation_progress? }
    DELETE /api/applicants/<id>
    POST   /api/applicants/move      → { ids: [...], stage }
    POST   /api/drag/start           → { active_id }
    POST   /api/drag/over            → { active_id, over_id }
    POST   /api/drag/end             → { active_id, over_id|null }
    POST   /api/selection/mode       → { enabled }
    POST   /api/selection/toggle     → { id }
    POST   /api/view                 → { query?, evaluation_filter?, sort_field?, sort_order?, sort_active? }
    POST   /api/stages               → { title, color? }
    PATCH  /api/stages/<id>          → { title }
    DELETE /api/stages/<id>          → 409 when the column is fixed or not empty

Dependencies: flask[async] (async views), pyyaml
"""

import asyncio
import hmac
import logging
from functools import wraps
from typing import Optional

from flask import Flask, jsonify, request

from hireboard.board import Board
from hireboard.config import BoardConfig, configure_logging
from hireboard.projection import EvaluationFilter, SortField, SortOrder
from hireboard.schema import ApplicantDraft, EvaluationProgress, RegistrationType, StageId
from hireboard.store import ColumnRuleViolation, UnknownStageError

logger = logging.getLogger(__name__)

app = Flask(__name__)

_board: Optional[Board] = None
API_SECRET = ""


def init_board(board: Board, api_secret: str = "") -> Board:
    """Install the board (and API secret) the routes operate on."""
    global _board, API_SECRET
    _board = board
    API_SECRET = api_secret
    return board


def get_board() -> Board:
    """The installed board, built from config and loaded on first use."""
    global _board
    if _board is None:
        cfg = BoardConfig.load()
        board = init_board(Board(cfg), cfg.api_secret)
        asyncio.run(board.load())
    return _board


@app.before_request
def _ensure_board():
    # Build outside the async views: loading runs its own event loop.
    get_board()


# ── Auth ─────────────────────────────────────────────────────────────────────


def require_api_key(f):
    """Decorator: reject requests without a valid X-API-Key header."""
    @wraps(f)
    async def decorated(*args, **kwargs):
        if not API_SECRET:
            return jsonify({"error": "API secret not set"}), 503
        provided = request.headers.get("X-API-Key", "").strip()
        if not hmac.compare_digest(provided, API_SECRET):
            code = 401 if not provided else 403
            return jsonify({"error": "Unauthorized"}), code
        return await f(*args, **kwargs)
    return decorated


def _body() -> dict:
    return request.get_json(force=True, silent=True) or {}


def _records(*records):
    return [r.to_dict() for r in records if r is not None]


def _result(*records, status: int = 200):
    return jsonify({"sync": _records(*records), "board": get_board().snapshot()}), status


# ── Read routes ──────────────────────────────────────────────────────────────


@app.route("/api/board")
def api_board():
    return jsonify(get_board().snapshot())


@app.route("/api/stats")
def api_stats():
    return jsonify(get_board().stats())


@app.route("/health")
def health():
    board = get_board()
    return jsonify({
        "status": "ok",
        "remote": board.remote_configured,
        "applicants": len(board.applicants),
        "stages": len(board.stages.ids()),
    })


# ── Applicants ───────────────────────────────────────────────────────────────


@app.route("/api/applicants", methods=["POST"])
@require_api_key
async def api_add_applicant():
    data = _body()
    name = str(data.get("name", "")).strip()
    stage = str(data.get("stage", "")).strip()
    if not name or not stage:
        return jsonify({"error": "name and stage are required"}), 400
    draft = ApplicantDraft(
        name=name,
        stage=StageId(stage),
        registration_type=RegistrationType.from_str(data.get("registration_type", "direct")),
    )
    try:
        record = await get_board().sync.add_applicant(draft)
    except UnknownStageError as e:
        return jsonify({"error": str(e)}), 400
    return _result(record, status=201)


@app.route("/api/applicants/<applicant_id>", methods=["PATCH"])
@require_api_key
async def api_update_applicant(applicant_id):
    board = get_board()
    if board.applicants.get_by_id(applicant_id) is None:
        return jsonify({"error": "Applicant not found"}), 404
    data = _body()
    changes = {}
    if "name" in data:
        changes["name"] = str(data["name"]).strip()
    if "applied_date" in data:
        changes["applied_date"] = str(data["applied_date"])
    if "registration_type" in data:
        changes["registration_type"] = RegistrationType.from_str(data["registration_type"])
    if "evaluation_progress" in data:
        progress = data["evaluation_progress"] or {}
        try:
            changes["evaluation_progress"] = EvaluationProgress(
                int(progress.get("current", 0)), int(progress.get("total", 1))
            )
        except (TypeError, ValueError) as e:
            return jsonify({"error": str(e)}), 400
    record = await board.sync.update_applicant(applicant_id, **changes)
    return _result(record)


@app.route("/api/applicants/<applicant_id>", methods=["DELETE"])
@require_api_key
async def api_delete_applicant(applicant_id):
    record = await get_board().sync.delete_applicant(applicant_id)
    if record is None:
        return jsonify({"error": "Applicant not found"}), 404
    return _result(record)


@app.route("/api/applicants/move", methods=["POST"])
@require_api_key
async def api_move_applicants():
    data = _body()
    ids = data.get("ids")
    stage = str(data.get("stage", "")).strip()
    if not ids or not stage:
        return jsonify({"error": "ids and stage are required"}), 400
    if not isinstance(ids, list) or not all(isinstance(i, str) for i in ids):
        return jsonify({"error": "ids must be a list of strings"}), 400
    sync = get_board().sync
    try:
        if len(ids) == 1:
            record = await sync.move_applicant(ids[0], stage)
        else:
            record = await sync.move_applicants(ids, stage)
    except UnknownStageError as e:
        return jsonify({"error": str(e)}), 400
    return _result(record)


# ── Drag events ──────────────────────────────────────────────────────────────


@app.route("/api/drag/start", methods=["POST"])
@require_api_key
async def api_drag_start():
    board = get_board()
    applicant = board.drag.drag_start(str(_body().get("active_id", "")))
    return jsonify({
        "active": applicant.to_dict() if applicant else None,
        "selected_ids": sorted(board.selection.selected_ids),
    })


@app.route("/api/drag/over", methods=["POST"])
@require_api_key
async def api_drag_over():
    data = _body()
    preview = get_board().drag.drag_over(str(data.get("active_id", "")), data.get("over_id"))
    if preview is None:
        return jsonify({"preview": None})
    return jsonify({"preview": {
        "move_set": sorted(preview.move_set),
        "stage": preview.target.stage_id,
        "over_applicant_id": preview.target.over_applicant_id,
        "crosses_stage": preview.crosses_stage,
    }})


@app.route("/api/drag/end", methods=["POST"])
@require_api_key
async def api_drag_end():
    data = _body()
    records = await get_board().drag.drag_end(str(data.get("active_id", "")), data.get("over_id"))
    return _result(*records)


# ── Selection and view ───────────────────────────────────────────────────────


@app.route("/api/selection/mode", methods=["POST"])
@require_api_key
async def api_selection_mode():
    board = get_board()
    board.selection.set_mode(bool(_body().get("enabled")))
    return _result()


@app.route("/api/selection/toggle", methods=["POST"])
@require_api_key
async def api_selection_toggle():
    board = get_board()
    applicant_id = str(_body().get("id", ""))
    if board.applicants.get_by_id(applicant_id) is None:
        return jsonify({"error": "Applicant not found"}), 404
    if not board.selection.toggle(applicant_id):
        return jsonify({"error": "multi-select mode is off"}), 409
    return _result()


@app.route("/api/view", methods=["POST"])
async def api_view():
    """Update search, evaluation filter and sort. View-only, no auth."""
    board = get_board()
    data = _body()
    if "query" in data:
        board.filter.query = str(data["query"] or "")
    if "evaluation_filter" in data:
        board.filter.evaluation_filter = EvaluationFilter.from_str(data["evaluation_filter"])
    if data.get("clear_filters"):
        board.filter.clear()
    if "sort_field" in data:
        board.sort.activate(SortField.from_str(data["sort_field"]))
    if "sort_order" in data:
        board.sort.order = SortOrder.from_str(data["sort_order"])
    if data.get("sort_active") is False:
        board.sort.deactivate()
    return _result()


# ── Columns ──────────────────────────────────────────────────────────────────


@app.route("/api/stages", methods=["POST"])
@require_api_key
async def api_add_stage():
    data = _body()
    title = str(data.get("title", "")).strip()
    if not title:
        return jsonify({"error": "title is required"}), 400
    record = await get_board().sync.add_column(title, data.get("color") or None)
    return _result(record, status=201)


@app.route("/api/stages/<stage_id>", methods=["PATCH"])
@require_api_key
async def api_rename_stage(stage_id):
    board = get_board()
    if stage_id not in board.stages:
        return jsonify({"error": "Stage not found"}), 404
    title = str(_body().get("title", "")).strip()
    if not title:
        return jsonify({"error": "title is required"}), 400
    record = await board.sync.rename_column(stage_id, title)
    return _result(record)


@app.route("/api/stages/<stage_id>", methods=["DELETE"])
@require_api_key
async def api_delete_stage(stage_id):
    try:
        record = await get_board().sync.delete_column(stage_id)
    except ColumnRuleViolation as e:
        return jsonify({"error": str(e)}), 409
    return _result(record)


# ── Main ─────────────────────────────────────────────────────────────────────

if __name__ == "__main__":
    import argparse
    import locale
    import os

    parser = argparse.ArgumentParser(description="Hireboard Server")
    parser.add_argument("--host", default="127.0.0.1",
                        help="Bind address (use 0.0.0.0 to expose on network)")
    parser.add_argument("--port", type=int, default=3000)
    parser.add_argument("--config", help="Path to hireboard.yaml")
    parser.add_argument("--db", help="Path to board.db (overrides HIREBOARD_DB env var)")
    args = parser.parse_args()

    if args.db:
        os.environ["HIREBOARD_DB"] = args.db

    cfg = BoardConfig.load(args.config)
    configure_logging(cfg.log_level)
    try:
        locale.setlocale(locale.LC_COLLATE, "")
    except locale.Error as e:
        logger.warning(f"Using default collation for name sort: {e}")
    board = init_board(Board(cfg), cfg.api_secret)
    asyncio.run(board.load())

    logger.info(
        f"Hireboard on http://{args.host}:{args.port} "
        f"({'db ' + cfg.db_path if cfg.remote_configured else 'local-only'})"
    )
    app.run(host=args.host, port=args.port, debug=False, threaded=False)
