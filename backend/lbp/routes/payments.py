# Overview: Flask API routes for payments operations; parses input and returns JSON responses.

# backend/lbp/routes/payments.py
"""
Payment API Routes

DESIGN:
- Record payments against invoices (partial payments allowed, no over-payment)
- Cancel payments (reverses the invoice amount and the cash movement)
- Every recorded payment writes the matching inflow on the agency register
"""

from flask import Blueprint, request, jsonify, g

from ..services import payment_service
from ..validation import parse_date, parse_int, require_fields
from ..decorators import require_user, handle_service_errors


payments_bp = Blueprint("payments", __name__, url_prefix="/api/paiements")


# =============================================================================
# PAYMENT CREATION
# =============================================================================

@payments_bp.post("")
@require_user
@handle_service_errors("record payment")
def record_payment_route():
    """
    Record a payment against an invoice.

    Request body:
    {
        "id_facture": 1,
        "montant": "5000",
        "mode_paiement": "comptant",
        "date_paiement": "2024-01-29",      (optional)
        "reference_paiement": "CHQ-123456", (optional)
        "monnaie_rendue": "0"               (optional)
    }

    Returns:
        201: Payment recorded, with the invoice payment summary
        400: Invalid input, invoice settled/cancelled, amount exceeds balance
        404: Invoice or register not found
        409: Invoice modified concurrently
    """
    data = require_fields(request.get_json(silent=True), ["id_facture", "montant", "mode_paiement"])
    invoice_id = parse_int(data["id_facture"], "id_facture")

    payment = payment_service.record_payment(
        invoice_id=invoice_id,
        amount=data["montant"],
        mode=data["mode_paiement"],
        user_code=g.user_code,
        payment_date=parse_date(data.get("date_paiement"), "date_paiement"),
        reference=data.get("reference_paiement"),
        change_given=data.get("monnaie_rendue", 0),
    )

    return jsonify({
        "payment": payment.to_dict(),
        "summary": payment_service.get_invoice_payment_summary(invoice_id),
    }), 201


# =============================================================================
# PAYMENT QUERIES
# =============================================================================

@payments_bp.get("")
@require_user
@handle_service_errors("list payments")
def list_payments_route():
    payments = payment_service.list_payments(
        invoice_id=parse_int(request.args.get("id_facture"), "id_facture"),
        include_cancelled=request.args.get("include_cancelled", "false").lower() == "true",
    )
    return jsonify({"payments": [p.to_dict() for p in payments]}), 200


@payments_bp.get("/<int:payment_id>")
@require_user
@handle_service_errors("load payment")
def get_payment_route(payment_id: int):
    return jsonify({"payment": payment_service.get_payment(payment_id).to_dict()}), 200


# =============================================================================
# CANCELLATION / VALIDATION
# =============================================================================

@payments_bp.post("/<int:payment_id>/annuler")
@require_user
@handle_service_errors("cancel payment")
def cancel_payment_route(payment_id: int):
    payment = payment_service.cancel_payment(payment_id, user_code=g.user_code)
    return jsonify({
        "payment": payment.to_dict(),
        "summary": payment_service.get_invoice_payment_summary(payment.invoice_id),
    }), 200


@payments_bp.post("/<int:payment_id>/valider")
@require_user
@handle_service_errors("validate payment")
def validate_payment_route(payment_id: int):
    return jsonify({"payment": payment_service.validate_payment(payment_id).to_dict()}), 200
