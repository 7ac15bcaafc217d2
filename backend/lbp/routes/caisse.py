# Overview: Flask API routes for cash registers and movements; parses input and returns JSON responses.

# backend/lbp/routes/caisse.py
"""
Cash Register API Routes

DESIGN:
- Registers are listed/created/toggled, never deleted
- Movements are append-only (POST only, no PUT/DELETE)
- Balance and daily close are computed on read
"""

from flask import Blueprint, request, jsonify, g

from ..models import MovementKind
from ..services import cash_service, report_service
from ..validation import money_str, parse_date, parse_enum, parse_int, require_fields
from ..decorators import require_user, handle_service_errors


caisse_bp = Blueprint("caisse", __name__, url_prefix="/api/caisses")


def _flag(name: str) -> bool:
    return request.args.get(name, "false").lower() == "true"


# =============================================================================
# REGISTERS
# =============================================================================

@caisse_bp.get("")
@require_user
@handle_service_errors("list cash registers")
def list_registers_route():
    registers = cash_service.list_registers(
        include_inactive=_flag("include_inactive"),
        agency_id=parse_int(request.args.get("agency_id"), "agency_id"),
    )
    return jsonify({"registers": [r.to_dict() for r in registers]}), 200


@caisse_bp.post("")
@require_user
@handle_service_errors("create cash register")
def create_register_route():
    """
    Request body:
    {
        "nom": "Caisse Abidjan",
        "solde_initial": "50000",
        "seuil_alerte": "50000",   (optional)
        "id_agence": 1             (optional)
    }
    """
    data = require_fields(request.get_json(silent=True), ["nom"])
    register = cash_service.create_register(
        name=data["nom"],
        opening_balance=data.get("solde_initial", 0),
        alert_threshold=data.get("seuil_alerte"),
        agency_id=parse_int(data.get("id_agence"), "id_agence"),
    )
    return jsonify({"register": register.to_dict()}), 201


@caisse_bp.get("/<int:register_id>")
@require_user
@handle_service_errors("load cash register")
def get_register_route(register_id: int):
    register = cash_service.get_register(register_id)
    return jsonify({
        "register": register.to_dict(),
        "solde": money_str(cash_service.get_balance(register_id)),
    }), 200


@caisse_bp.patch("/<int:register_id>/active")
@require_user
@handle_service_errors("toggle cash register")
def set_register_active_route(register_id: int):
    data = require_fields(request.get_json(silent=True), ["is_active"])
    register = cash_service.set_register_active(register_id, bool(data["is_active"]))
    return jsonify({"register": register.to_dict()}), 200


@caisse_bp.get("/<int:register_id>/solde")
@require_user
@handle_service_errors("compute cash register balance")
def balance_route(register_id: int):
    balance = cash_service.get_balance(register_id)
    return jsonify({"register_id": register_id, "solde": money_str(balance)}), 200


@caisse_bp.get("/<int:register_id>/point")
@require_user
@handle_service_errors("compute point de caisse")
def point_route(register_id: int):
    day = parse_date(request.args.get("date"), "date")
    return jsonify(report_service.point_de_caisse(register_id, day)), 200


# =============================================================================
# MOVEMENTS
# =============================================================================

@caisse_bp.get("/mouvements")
@require_user
@handle_service_errors("list cash movements")
def list_movements_route():
    raw_kind = request.args.get("type")
    movements = cash_service.list_movements(
        register_id=parse_int(request.args.get("id_caisse"), "id_caisse"),
        start=parse_date(request.args.get("date_debut"), "date_debut"),
        end=parse_date(request.args.get("date_fin"), "date_fin"),
        kind=parse_enum(MovementKind, raw_kind, "type") if raw_kind else None,
        limit=parse_int(request.args.get("limit"), "limit"),
    )
    return jsonify({"movements": [m.to_dict() for m in movements]}), 200


@caisse_bp.post("/mouvements")
@require_user
@handle_service_errors("record cash movement")
def record_movement_route():
    """
    Record a movement (APPRO, DECAISSEMENT, ENTREE_CHEQUE, ENTREE_ESPECE,
    ENTREE_VIREMENT).

    Request body:
    {
        "type": "APPRO",
        "montant": "20000",
        "libelle": "Approvisionnement",
        "id_caisse": 1,               (optional, defaults to the caller's agency register)
        "date_mouvement": "2024-01-29",  (optional, defaults to today)
        "details": {...}              (optional)
    }
    """
    data = require_fields(request.get_json(silent=True), ["type", "montant", "libelle"])
    movement = cash_service.record_movement(
        kind=parse_enum(MovementKind, data["type"], "type"),
        amount=data["montant"],
        label=data["libelle"],
        user_code=g.user_code,
        register_id=parse_int(data.get("id_caisse"), "id_caisse"),
        agency_id=g.agency_id,
        movement_date=parse_date(data.get("date_mouvement"), "date_mouvement"),
        details=data.get("details"),
    )
    return jsonify({"movement": movement.to_dict()}), 201
