"""
Web application module for the referee league sync server.

This module contains the Flask REST gateway that exposes the two shared
documents (``teams`` and ``matchdays``) to every client. Documents are stored
and served as raw JSON; the gateway checks their shape down to the player
and match entries, never the references between them.
"""
import logging
import os
import time
from typing import Any, List, Optional

from flask import Flask, jsonify, request
from flask_cors import CORS

from ..models import LeagueSnapshot, queries
from ..services.persistence_service import DocumentStoreError, JsonDocumentStore
from ..utils import (
    API_PREFIX, MATCHDAYS_DOCUMENT, TEAMS_DOCUMENT, format_iso, parse_iso, utc_now
)
from ..utils.constants import (
    APP_TITLE, BACKUP_FILENAME, BACKUP_VERSION, CORS_ORIGINS, DEFAULT_DATA_DIR, DEFAULT_HOST,
    DEFAULT_PORT, MAX_CONTENT_LENGTH
)

logger = logging.getLogger(__name__)


def _is_string(value: Any) -> bool:
    return isinstance(value, str) and bool(value)


def _has_iso(item: dict, key: str) -> bool:
    try:
        parse_iso(item.get(key))
        return True
    except ValueError:
        return False


def _players_error(team: dict, index: int) -> Optional[str]:
    players = team.get("players") or []
    if not isinstance(players, list):
        return f"Team at index {index} must have a players array"
    for position, player in enumerate(players):
        if not isinstance(player, dict) or not _is_string(player.get("id")):
            return f"Player {position} of team at index {index} must have a string id"
    return None


def _matches_error(match_day: dict, index: int) -> Optional[str]:
    matches = match_day.get("matches") or []
    if not isinstance(matches, list):
        return f"Match day at index {index} must have a matches array"
    for position, match in enumerate(matches):
        if not isinstance(match, dict) or not all(
            _is_string(match.get(key)) for key in ("id", "homeTeamId", "awayTeamId")
        ):
            return f"Match {position} of match day at index {index} must have string id, homeTeamId and awayTeamId"
        if not _has_iso(match, "scheduledTime"):
            return f"Match {position} of match day at index {index} must have an ISO-8601 scheduledTime"
    return None


def teams_shape_error(teams: Any) -> Optional[str]:
    """Return why ``teams`` is not a storable teams document, or None."""
    if not isinstance(teams, list):
        return "Teams data must be an array"
    for index, team in enumerate(teams):
        if not isinstance(team, dict) or not _is_string(team.get("id")) or not isinstance(team.get("name"), str):
            return f"Team at index {index} must have a string id and name"
        error = _players_error(team, index)
        if error:
            return error
    return None


def match_days_shape_error(match_days: Any) -> Optional[str]:
    """Return why ``match_days`` is not a storable matchdays document, or None."""
    if not isinstance(match_days, list):
        return "Match days data must be an array"
    for index, match_day in enumerate(match_days):
        if not isinstance(match_day, dict) or not _is_string(match_day.get("id")):
            return f"Match day at index {index} must have a string id"
        if not _has_iso(match_day, "date"):
            return f"Match day at index {index} must have an ISO-8601 date"
        error = _matches_error(match_day, index)
        if error:
            return error
    return None


def sort_by_date(match_days: List[dict]) -> List[dict]:
    return sorted(match_days, key=lambda md: parse_iso(md["date"]))


def create_app(data_dir: Optional[str] = None, store: Optional[JsonDocumentStore] = None) -> Flask:
    """
    Create and configure the Flask application with API endpoints.

    Args:
        data_dir: Directory holding the JSON documents (default: ``data``)
        store: Preconfigured document store; overrides ``data_dir``

    Returns:
        Configured Flask application instance
    """
    app = Flask(__name__)
    app.config["DATA_DIR"] = data_dir or DEFAULT_DATA_DIR
    app.config["MAX_CONTENT_LENGTH"] = MAX_CONTENT_LENGTH
    app.config["CORS_ORIGINS"] = CORS_ORIGINS
    app.config.from_prefixed_env("REFEREE_LEAGUE")

    # Browser clients are served from other origins
    CORS(app, resources={f"{API_PREFIX}/*": {"origins": app.config["CORS_ORIGINS"]}})

    store = store or JsonDocumentStore(app.config["DATA_DIR"])
    store.ensure_initialized()
    started = time.monotonic()

    def _store_error(message: str, error: Exception):
        logger.error("%s: %s", message, error)
        return jsonify({"error": message}), 500

    def _find_by_id(name: str, item_id: str, not_found: str, failed: str):
        try:
            items = store.read_document(name)
        except DocumentStoreError as e:
            return _store_error(failed, e)
        item = next((i for i in items if isinstance(i, dict) and i.get("id") == item_id), None)
        if item is None:
            return jsonify({"error": not_found}), 404
        return jsonify(item)

    @app.route(f"{API_PREFIX}/health", methods=["GET"])
    def health():
        """Liveness check."""
        return jsonify({
            "status": "OK",
            "timestamp": format_iso(utc_now()),
            "message": f"{APP_TITLE} is running",
            "uptime": time.monotonic() - started,
        })

    @app.route(f"{API_PREFIX}/teams", methods=["GET"])
    def get_teams():
        try:
            teams = store.read_document(TEAMS_DOCUMENT)
        except DocumentStoreError as e:
            return _store_error("Failed to fetch teams", e)
        logger.info("Serving %d teams", len(teams))
        return jsonify(teams)

    @app.route(f"{API_PREFIX}/teams", methods=["POST"])
    def replace_teams():
        """Overwrite the whole teams document."""
        teams = request.get_json(silent=True)
        error = teams_shape_error(teams)
        if error:
            return jsonify({"error": error}), 400

        if not store.write_document(TEAMS_DOCUMENT, teams):
            return jsonify({"error": "Failed to update teams"}), 500
        logger.info("Updated %d teams", len(teams))
        return jsonify({"success": True, "message": "Teams updated successfully", "count": len(teams)})

    @app.route(f"{API_PREFIX}/teams/<team_id>", methods=["GET"])
    def get_team(team_id: str):
        return _find_by_id(TEAMS_DOCUMENT, team_id, "Team not found", "Failed to read team data")

    @app.route(f"{API_PREFIX}/matchdays", methods=["GET"])
    def get_match_days():
        try:
            match_days = store.read_document(MATCHDAYS_DOCUMENT)
        except DocumentStoreError as e:
            return _store_error("Failed to fetch match days", e)
        logger.info("Serving %d match days", len(match_days))
        return jsonify(match_days)

    @app.route(f"{API_PREFIX}/matchdays", methods=["POST"])
    def replace_match_days():
        """Overwrite the whole matchdays document, stored sorted by date."""
        match_days = request.get_json(silent=True)
        error = match_days_shape_error(match_days)
        if error:
            return jsonify({"error": error}), 400

        if not store.write_document(MATCHDAYS_DOCUMENT, sort_by_date(match_days)):
            return jsonify({"error": "Failed to update match days"}), 500
        logger.info("Updated %d match days", len(match_days))
        return jsonify({"success": True, "message": "Match days updated successfully", "count": len(match_days)})

    @app.route(f"{API_PREFIX}/matchdays/<match_day_id>", methods=["GET"])
    def get_match_day(match_day_id: str):
        return _find_by_id(MATCHDAYS_DOCUMENT, match_day_id, "Match day not found", "Failed to read match day data")

    @app.route(f"{API_PREFIX}/sync", methods=["GET"])
    def get_sync():
        """Both documents in one response."""
        try:
            teams = store.read_document(TEAMS_DOCUMENT)
            match_days = store.read_document(MATCHDAYS_DOCUMENT)
        except DocumentStoreError as e:
            return _store_error("Failed to sync data", e)
        return jsonify({"teams": teams, "matchDays": match_days})

    @app.route(f"{API_PREFIX}/sync", methods=["POST"])
    def post_sync():
        """
        Overwrite both documents.

        The two writes are independent; if either fails the response is 500
        even though the other document may already have been replaced.
        """
        data = request.get_json(silent=True)
        if not isinstance(data, dict):
            return jsonify({"error": "Teams and matchDays must be arrays"}), 400
        teams, match_days = data.get("teams"), data.get("matchDays")
        if not isinstance(teams, list) or not isinstance(match_days, list):
            return jsonify({"error": "Teams and matchDays must be arrays"}), 400
        error = teams_shape_error(teams) or match_days_shape_error(match_days)
        if error:
            return jsonify({"error": error}), 400

        teams_ok = store.write_document(TEAMS_DOCUMENT, teams)
        match_days_ok = store.write_document(MATCHDAYS_DOCUMENT, sort_by_date(match_days))
        if not (teams_ok and match_days_ok):
            logger.error("Sync write failed (teams=%s, matchdays=%s)", teams_ok, match_days_ok)
            return jsonify({"error": "Failed to sync data"}), 500

        logger.info("Sync update: %d teams, %d match days", len(teams), len(match_days))
        return jsonify({
            "success": True,
            "message": "Data synced successfully",
            "teamsCount": len(teams),
            "matchDaysCount": len(match_days),
        })

    @app.route(f"{API_PREFIX}/stats", methods=["GET"])
    def get_stats():
        try:
            teams = store.read_document(TEAMS_DOCUMENT)
            match_days = store.read_document(MATCHDAYS_DOCUMENT)
        except DocumentStoreError as e:
            return _store_error("Failed to calculate statistics", e)
        try:
            snapshot = LeagueSnapshot.from_documents(teams, match_days)
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            return _store_error("Failed to calculate statistics", e)

        return jsonify({
            "totalTeams": len(snapshot.teams),
            "totalPlayers": queries.total_players(snapshot.teams),
            "totalMatchDays": len(snapshot.match_days),
            "totalMatches": queries.total_matches(snapshot.match_days),
            "lastUpdated": format_iso(utc_now()),
        })

    @app.route(f"{API_PREFIX}/backup", methods=["GET"])
    def get_backup():
        """Both documents with export metadata, as a download."""
        try:
            teams = store.read_document(TEAMS_DOCUMENT)
            match_days = store.read_document(MATCHDAYS_DOCUMENT)
        except DocumentStoreError as e:
            return _store_error("Failed to create backup", e)

        response = jsonify({
            "teams": teams,
            "matchDays": match_days,
            "exportDate": format_iso(utc_now()),
            "version": BACKUP_VERSION,
        })
        response.headers["Content-Disposition"] = f"attachment; filename={BACKUP_FILENAME}"
        return response

    @app.errorhandler(404)
    def not_found(error):
        return jsonify({"error": "Endpoint not found", "path": request.path}), 404

    @app.errorhandler(405)
    def method_not_allowed(error):
        return jsonify({"error": "Method not allowed", "path": request.path}), 405

    @app.errorhandler(413)
    def payload_too_large(error):
        return jsonify({"error": "Request body too large"}), 413

    @app.errorhandler(500)
    def internal_error(error):
        logger.error("Server error: %s", error)
        return jsonify({"error": "Internal server error"}), 500

    return app


def run_web_app(host: str = DEFAULT_HOST, port: int = DEFAULT_PORT, data_dir: Optional[str] = None) -> None:
    """
    Run the gateway.

    Args:
        host: Host address to bind to
        port: Port number to listen on
        data_dir: Directory holding the JSON documents
    """
    app = create_app(data_dir)
    logger.info("%s running on port %d (API base %s)", APP_TITLE, port, API_PREFIX)
    app.run(host=host, port=port, debug=False)


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    run_web_app(port=int(os.environ.get("PORT", DEFAULT_PORT)))
