# invoiceflow/api/clients.py
from __future__ import annotations

from flask import Blueprint, current_app, jsonify, request
from flask_login import current_user, login_required

from invoiceflow.services import clients as client_service
from invoiceflow.services import stats
from invoiceflow.utils.parsing import parse_page_args

clients_bp = Blueprint("clients", __name__, url_prefix="/api/clients")


@clients_bp.before_request
@login_required
def _require_login():
    return None


@clients_bp.route("", methods=["GET"])
def list_clients():
    page, limit = parse_page_args(
        request.args.get("page"),
        request.args.get("limit"),
        default_limit=current_app.config["DEFAULT_PAGE_SIZE"],
        max_limit=current_app.config["MAX_PAGE_SIZE"],
    )
    items, pagination = client_service.list_clients(
        current_user.id,
        status=request.args.get("status"),
        search=request.args.get("search"),
        page=page,
        limit=limit,
    )
    return jsonify({
        "message": "Clients retrieved successfully",
        "clients": [c.to_dict() for c in items],
        "pagination": pagination,
    })


@clients_bp.route("/stats", methods=["GET"])
def client_stats():
    return jsonify({
        "message": "Client statistics retrieved successfully",
        "stats": stats.get_client_stats(current_user.id),
    })


@clients_bp.route("/outstanding", methods=["GET"])
def outstanding():
    found = stats.clients_with_outstanding_balance(current_user.id)
    return jsonify({
        "message": "Clients with outstanding balances retrieved successfully",
        "clients": [c.to_dict() for c in found],
    })


@clients_bp.route("", methods=["POST"])
def create_client():
    data = request.get_json(silent=True) or {}
    client = client_service.create_client(current_user, data)
    return jsonify({"message": "Client created successfully", "client": client.to_dict()}), 201


@clients_bp.route("/<int:client_id>", methods=["GET"])
def get_client(client_id):
    client = client_service.get_client(current_user.id, client_id)
    return jsonify({"message": "Client retrieved successfully", "client": client.to_dict()})


@clients_bp.route("/<int:client_id>", methods=["PUT", "PATCH"])
def update_client(client_id):
    data = request.get_json(silent=True) or {}
    client = client_service.update_client(current_user.id, client_id, data)
    return jsonify({"message": "Client updated successfully", "client": client.to_dict()})


@clients_bp.route("/<int:client_id>", methods=["DELETE"])
def delete_client(client_id):
    client_service.delete_client(current_user.id, client_id)
    return jsonify({"message": "Client deleted successfully"})


@clients_bp.route("/<int:client_id>/update-stats", methods=["POST"])
def update_client_stats(client_id):
    client = client_service.refresh_financial_stats(current_user.id, client_id)
    return jsonify({"message": "Client statistics updated successfully", "client": client.to_dict()})
