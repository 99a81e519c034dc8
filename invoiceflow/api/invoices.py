# invoiceflow/api/invoices.py
from __future__ import annotations

from flask import Blueprint, current_app, jsonify, request
from flask_login import current_user, login_required

from invoiceflow.services import invoices as invoice_service
from invoiceflow.services import stats
from invoiceflow.utils.parsing import parse_page_args

invoices_bp = Blueprint("invoices", __name__, url_prefix="/api/invoices")


@invoices_bp.before_request
@login_required
def _require_login():
    return None


def _page_args():
    return parse_page_args(
        request.args.get("page"),
        request.args.get("limit"),
        default_limit=current_app.config["DEFAULT_PAGE_SIZE"],
        max_limit=current_app.config["MAX_PAGE_SIZE"],
    )


@invoices_bp.route("", methods=["GET"])
def list_invoices():
    page, limit = _page_args()
    items, pagination = invoice_service.list_invoices(
        current_user.id,
        status=request.args.get("status"),
        search=request.args.get("search"),
        page=page,
        limit=limit,
    )
    return jsonify({
        "message": "Invoices retrieved successfully",
        "invoices": [inv.to_dict() for inv in items],
        "pagination": pagination,
    })


@invoices_bp.route("/stats", methods=["GET"])
def invoice_stats():
    return jsonify({
        "message": "Invoice statistics retrieved successfully",
        "stats": stats.get_invoice_stats(current_user.id),
    })


@invoices_bp.route("", methods=["POST"])
def create_invoice():
    data = request.get_json(silent=True) or {}
    invoice = invoice_service.create_invoice(current_user, data)
    return jsonify({"message": "Invoice created successfully", "invoice": invoice.to_dict()}), 201


@invoices_bp.route("/<int:invoice_id>", methods=["GET"])
def get_invoice(invoice_id):
    invoice = invoice_service.get_invoice(current_user.id, invoice_id)
    return jsonify({"message": "Invoice retrieved successfully", "invoice": invoice.to_dict()})


@invoices_bp.route("/<int:invoice_id>", methods=["PUT", "PATCH"])
def update_invoice(invoice_id):
    data = request.get_json(silent=True) or {}
    invoice = invoice_service.update_invoice(current_user.id, invoice_id, data)
    return jsonify({"message": "Invoice updated successfully", "invoice": invoice.to_dict()})


@invoices_bp.route("/<int:invoice_id>", methods=["DELETE"])
def delete_invoice(invoice_id):
    invoice_service.delete_invoice(current_user.id, invoice_id)
    return jsonify({"message": "Invoice deleted successfully"})


# ======================
# Status transitions
# ======================
@invoices_bp.route("/<int:invoice_id>/send", methods=["POST"])
def send_invoice(invoice_id):
    invoice = invoice_service.send_invoice(current_user.id, invoice_id)
    return jsonify({"message": "Invoice marked as sent successfully", "invoice": invoice.to_dict()})


@invoices_bp.route("/<int:invoice_id>/view", methods=["POST"])
def view_invoice(invoice_id):
    invoice = invoice_service.mark_invoice_viewed(current_user.id, invoice_id)
    return jsonify({"message": "Invoice view recorded", "invoice": invoice.to_dict()})


@invoices_bp.route("/<int:invoice_id>/mark-paid", methods=["POST"])
def mark_paid(invoice_id):
    invoice = invoice_service.mark_invoice_paid(current_user.id, invoice_id)
    return jsonify({"message": "Invoice marked as paid successfully", "invoice": invoice.to_dict()})


@invoices_bp.route("/<int:invoice_id>/cancel", methods=["POST"])
def cancel_invoice(invoice_id):
    invoice = invoice_service.cancel_invoice(current_user.id, invoice_id)
    return jsonify({"message": "Invoice cancelled", "invoice": invoice.to_dict()})
