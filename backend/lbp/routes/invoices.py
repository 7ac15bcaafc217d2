# Overview: Flask API routes for invoices; parses input and returns JSON responses.

from flask import Blueprint, request, jsonify, g

from ..models import InvoiceState
from ..services import invoice_service, payment_service
from ..validation import parse_date, parse_int, require_fields
from ..decorators import require_user, handle_service_errors
from ..errors import BadRequestError, NotFoundError


invoices_bp = Blueprint("invoices", __name__, url_prefix="/api/factures")


@invoices_bp.get("")
@require_user
@handle_service_errors("list invoices")
def list_invoices_route():
    raw_state = parse_int(request.args.get("etat"), "etat")
    state = None
    if raw_state is not None:
        try:
            state = InvoiceState(raw_state)
        except ValueError:
            raise BadRequestError("etat doit valoir 0 (proforma), 1 (définitive) ou 2 (annulée)")
    invoices = invoice_service.list_invoices(state)
    return jsonify({"invoices": [i.to_dict() for i in invoices]}), 200


@invoices_bp.post("")
@require_user
@handle_service_errors("create proforma invoice")
def create_proforma_route():
    """
    Request body:
    {
        "id_colis": 12,
        "date_facture": "2024-01-29"   (optional)
    }
    """
    data = require_fields(request.get_json(silent=True), ["id_colis"])
    invoice = invoice_service.create_proforma(
        parcel_id=parse_int(data["id_colis"], "id_colis"),
        user_code=g.user_code,
        invoice_date=parse_date(data.get("date_facture"), "date_facture"),
    )
    return jsonify({"invoice": invoice.to_dict()}), 201


@invoices_bp.get("/<int:invoice_id>")
@require_user
@handle_service_errors("load invoice")
def get_invoice_route(invoice_id: int):
    return jsonify({"invoice": invoice_service.get_invoice(invoice_id).to_dict()}), 200


@invoices_bp.get("/colis/<string:reference>")
@require_user
@handle_service_errors("load invoice by parcel")
def get_invoice_by_parcel_route(reference: str):
    invoice = invoice_service.find_by_parcel_reference(reference)
    if not invoice:
        raise NotFoundError(f"Aucune facture pour le colis {reference}")
    return jsonify({"invoice": invoice.to_dict()}), 200


@invoices_bp.post("/<int:invoice_id>/valider")
@require_user
@handle_service_errors("validate invoice")
def validate_invoice_route(invoice_id: int):
    return jsonify({"invoice": invoice_service.validate_invoice(invoice_id).to_dict()}), 200


@invoices_bp.post("/<int:invoice_id>/annuler")
@require_user
@handle_service_errors("cancel invoice")
def cancel_invoice_route(invoice_id: int):
    return jsonify({"invoice": invoice_service.cancel_invoice(invoice_id).to_dict()}), 200


@invoices_bp.get("/<int:invoice_id>/paiements")
@require_user
@handle_service_errors("load invoice payments")
def invoice_payments_route(invoice_id: int):
    return jsonify(payment_service.get_invoice_payment_summary(invoice_id)), 200
