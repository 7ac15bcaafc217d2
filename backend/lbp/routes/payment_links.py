# Overview: Flask API routes for mobile-money payment links.

from flask import Blueprint, request, jsonify

from ..services import payment_link_service
from ..validation import parse_int, require_fields
from ..decorators import require_user, handle_service_errors


payment_links_bp = Blueprint("payment_links", __name__, url_prefix="/api/liens-paiement")


@payment_links_bp.post("")
@require_user
@handle_service_errors("create payment link")
def create_link_route():
    """
    Request body:
    {
        "id_facture": 1,
        "montant": "5000"   (optional, defaults to the remaining balance)
    }
    """
    data = require_fields(request.get_json(silent=True), ["id_facture"])
    link = payment_link_service.create_link(
        invoice_id=parse_int(data["id_facture"], "id_facture"),
        amount=data.get("montant"),
    )
    return jsonify({"link": link.to_dict()}), 201


# Public: opened by the customer, no user header
@payment_links_bp.get("/<string:token>")
@handle_service_errors("load payment link")
def get_link_route(token: str):
    link = payment_link_service.get_pending_link(token)
    return jsonify({
        "link": link.to_dict(),
        "invoice_number": link.invoice.number,
        "currency": link.invoice.currency,
    }), 200


# Public: called by the payment provider
@payment_links_bp.post("/<string:token>/callback")
@handle_service_errors("handle payment link callback")
def callback_route(token: str):
    """
    Request body:
    {
        "status": "SUCCESS",
        "provider": "orange_money",
        "transaction_id": "OM-123",
        "customer_name": "..."   (optional)
    }
    """
    data = require_fields(request.get_json(silent=True), ["status", "provider"])
    link = payment_link_service.handle_callback(
        token,
        status=data["status"],
        provider=data["provider"],
        transaction_id=data.get("transaction_id"),
        customer_name=data.get("customer_name"),
    )
    return jsonify({"link": link.to_dict()}), 200


@payment_links_bp.post("/<string:token>/annuler")
@require_user
@handle_service_errors("cancel payment link")
def cancel_link_route(token: str):
    return jsonify({"link": payment_link_service.cancel_link(token).to_dict()}), 200
