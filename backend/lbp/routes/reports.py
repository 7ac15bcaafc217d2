# Overview: Flask API routes for reconciliation reports.

from flask import Blueprint, request, jsonify

from ..errors import BadRequestError
from ..services import report_service
from ..validation import parse_date, parse_int
from ..decorators import require_user, handle_service_errors


reports_bp = Blueprint("reports", __name__, url_prefix="/api/rapports")


def _required_int(name: str) -> int:
    value = parse_int(request.args.get(name), name)
    if value is None:
        raise BadRequestError(f"{name} est obligatoire")
    return value


@reports_bp.get("/point-caisse")
@require_user
@handle_service_errors("build point de caisse")
def point_de_caisse_route():
    """Query params: id_caisse (required), date (optional, defaults to today)."""
    return jsonify(report_service.point_de_caisse(
        _required_int("id_caisse"),
        parse_date(request.args.get("date"), "date"),
    )), 200


@reports_bp.get("/grandes-lignes")
@require_user
@handle_service_errors("build grandes lignes report")
def grandes_lignes_route():
    """Query params: id_caisse, date_debut, date_fin (all required)."""
    return jsonify(report_service.grandes_lignes(
        _required_int("id_caisse"),
        parse_date(request.args.get("date_debut"), "date_debut"),
        parse_date(request.args.get("date_fin"), "date_fin"),
    )), 200


@reports_bp.get("/reconciliation-agences")
@require_user
@handle_service_errors("build agency reconciliation")
def agency_reconciliation_route():
    """Query params: date_debut, date_fin (required), id_agence (optional)."""
    return jsonify(report_service.agency_reconciliation(
        parse_date(request.args.get("date_debut"), "date_debut"),
        parse_date(request.args.get("date_fin"), "date_fin"),
        agency_id=parse_int(request.args.get("id_agence"), "id_agence"),
    )), 200
