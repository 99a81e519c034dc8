# invoiceflow/api/auth.py
from __future__ import annotations

from flask import Blueprint, jsonify, request
from flask_login import current_user, login_required, login_user, logout_user

from invoiceflow.extensions import limiter
from invoiceflow.services import accounts

auth = Blueprint("auth", __name__, url_prefix="/api/auth")


@auth.route("/register", methods=["POST"])
@limiter.limit("5 per minute")
def register():
    data = request.get_json(silent=True) or {}
    user = accounts.register_user(data.get("name"), data.get("email"), data.get("password"))
    login_user(user)
    return jsonify({"message": "User registered successfully", "user": user.to_dict()}), 201


@auth.route("/login", methods=["POST"])
@limiter.limit("5 per minute")
def login():
    data = request.get_json(silent=True) or {}
    email = data.get("email")
    password = data.get("password")

    if not email or not password:
        return jsonify({"message": "Email and password are required", "error": "MISSING_CREDENTIALS"}), 400

    user = accounts.authenticate(email, password)
    if user is None:
        return jsonify({"message": "Invalid email or password", "error": "INVALID_CREDENTIALS"}), 401

    login_user(user, remember=bool(data.get("remember")))
    return jsonify({"message": "Login successful", "user": user.to_dict()})


@auth.route("/logout", methods=["POST"])
@login_required
def logout():
    logout_user()
    return jsonify({"message": "Logged out"})


@auth.route("/me", methods=["GET"])
@login_required
def me():
    return jsonify({"user": current_user.to_dict()})


@auth.route("/profile", methods=["PUT"])
@login_required
def update_profile():
    data = request.get_json(silent=True) or {}
    user = accounts.update_profile(current_user, data)
    return jsonify({"message": "Profile updated successfully", "user": user.to_dict()})


@auth.route("/change-password", methods=["PUT"])
@login_required
@limiter.limit("5 per minute")
def change_password():
    data = request.get_json(silent=True) or {}
    accounts.change_password(current_user, data.get("current_password"), data.get("new_password"))
    return jsonify({"message": "Password changed successfully"})
