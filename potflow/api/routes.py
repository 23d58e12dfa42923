"""
API routes for automations, linked accounts and the scheduled run trigger. No HTML here.
"""

import logging
from datetime import datetime, timezone

from flask import Blueprint, jsonify, request
from flask_wtf.csrf import generate_csrf
from marshmallow import ValidationError

from potflow.automation.rules import AutomationManager
from potflow.automation.runner import AutomationRunner
from potflow.db import get_db_session
from potflow.errors import MonzoError
from potflow.logging_config import get_logging_manager
from potflow.models import LinkedAccount, Pot
from potflow.monzo.sync import refresh_linked_account
from potflow.services.account_utils import (days_until_reconnection,
                                            get_effective_account_type,
                                            get_reconnection_status)
from potflow.services.auth_service import (get_monzo_client, get_settings,
                                           get_user_id_from_auth,
                                           is_cron_request_authorized)
from potflow.validation_schemas import (AutomationCreateSchema,
                                        AutomationToggleSchema,
                                        LoggingConfigSchema,
                                        create_validation_error_response,
                                        validate_request_json)

api_bp = Blueprint("api", __name__)
logger = logging.getLogger(__name__)


def _unauthenticated():
    return jsonify({"error": "No user found. Please authenticate."}), 401


@api_bp.route("/cron/run-automations", methods=["GET", "POST"])
def run_automations():
    """
    Run due automations: deposit money from the Monzo current account into pots.
    Auth: Authorization: Bearer <CRON_SECRET> or ?secret=<CRON_SECRET>.
    """
    if not is_cron_request_authorized():
        logger.warning("[RUN-AUTOMATIONS] Rejected unauthorized trigger")
        return jsonify({"error": "Unauthorized"}), 401

    settings = get_settings()
    try:
        with next(get_db_session()) as db:
            runner = AutomationRunner(db, get_monzo_client(), tz=settings.tz)
            report = runner.run(datetime.now(timezone.utc))
    except Exception as e:
        logger.exception("[RUN-AUTOMATIONS] Run failed during setup")
        return jsonify({"error": str(e), "ran": 0}), 500

    return jsonify(report.to_dict())


@api_bp.route("/csrf-token", methods=["GET"])
def csrf_token():
    """
    CSRF token for the signed-in session. Send it back as the X-CSRFToken header on writes.
    """
    return jsonify({"csrf_token": generate_csrf()})


@api_bp.route("/automations", methods=["GET"])
def list_automations():
    """
    Get all automations for the signed-in user.
    """
    user_id = get_user_id_from_auth()
    if not user_id:
        return _unauthenticated()

    with next(get_db_session()) as db:
        automations = AutomationManager(db).get_automations_by_user(user_id)
        data = [a.to_dict() for a in automations]
    return jsonify({"automations": data, "total": len(data)})


@api_bp.route("/automations", methods=["POST"])
def create_automation():
    """
    Create an automation. The destination pot must belong to the signed-in user.
    """
    user_id = get_user_id_from_auth()
    if not user_id:
        return _unauthenticated()

    try:
        data = validate_request_json(AutomationCreateSchema, request.get_json(silent=True))
    except ValidationError as e:
        body, status = create_validation_error_response(e)
        return jsonify(body), status

    with next(get_db_session()) as db:
        pot = (
            db.query(Pot)
            .join(LinkedAccount, Pot.linked_account_id == LinkedAccount.id)
            .filter(Pot.id == data["destination_pot_id"], LinkedAccount.user_id == user_id)
            .first()
        )
        if pot is None:
            return jsonify({"error": "Destination pot not found"}), 404

        manager = AutomationManager(db, tz=get_settings().tz)
        automation = manager.create_automation(user_id, data, datetime.now(timezone.utc))
        return jsonify({"success": True, "automation": automation.to_dict()}), 201


@api_bp.route("/automations/<automation_id>/toggle", methods=["POST"])
def toggle_automation(automation_id):
    """
    Activate or pause an automation. Expects JSON: {"is_active": bool}
    """
    user_id = get_user_id_from_auth()
    if not user_id:
        return _unauthenticated()

    try:
        data = validate_request_json(AutomationToggleSchema, request.get_json(silent=True))
    except ValidationError as e:
        body, status = create_validation_error_response(e)
        return jsonify(body), status

    with next(get_db_session()) as db:
        manager = AutomationManager(db, tz=get_settings().tz)
        automation = manager.get_automation(automation_id, user_id=user_id)
        if automation is None:
            return jsonify({"error": "Automation not found"}), 404
        manager.set_active(automation, data["is_active"], datetime.now(timezone.utc))
        return jsonify({"success": True, "automation": automation.to_dict()})


@api_bp.route("/automations/<automation_id>", methods=["DELETE"])
def delete_automation(automation_id):
    user_id = get_user_id_from_auth()
    if not user_id:
        return _unauthenticated()

    with next(get_db_session()) as db:
        manager = AutomationManager(db)
        automation = manager.get_automation(automation_id, user_id=user_id)
        if automation is None:
            return jsonify({"error": "Automation not found"}), 404
        manager.delete_automation(automation)
    return jsonify({"success": True})


@api_bp.route("/accounts", methods=["GET"])
def list_accounts():
    """
    Linked accounts of the signed-in user with their reconnection window.
    """
    user_id = get_user_id_from_auth()
    if not user_id:
        return _unauthenticated()

    now = datetime.now(timezone.utc)
    with next(get_db_session()) as db:
        accounts = db.query(LinkedAccount).filter_by(user_id=user_id, is_active=True).all()
        data = []
        for account in accounts:
            item = account.to_dict()
            item["account_type"] = get_effective_account_type(
                account.account_type, account.account_name
            )
            if account.reconnect_by is not None:
                days = days_until_reconnection(account.reconnect_by, now)
                item["days_until_reconnect"] = days
                item["reconnection_status"] = get_reconnection_status(days)
            data.append(item)
    return jsonify({"accounts": data})


@api_bp.route("/accounts/<linked_account_id>/pots", methods=["GET"])
def list_pots(linked_account_id):
    user_id = get_user_id_from_auth()
    if not user_id:
        return _unauthenticated()

    with next(get_db_session()) as db:
        account = (
            db.query(LinkedAccount).filter_by(id=linked_account_id, user_id=user_id).first()
        )
        if account is None:
            return jsonify({"error": "Account not found"}), 404
        pots = [pot.to_dict() for pot in account.pots]
    return jsonify({"pots": pots})


@api_bp.route("/accounts/sync", methods=["POST"])
def sync_accounts():
    """
    Refresh balances and pots for every active linked account of the signed-in user.
    """
    user_id = get_user_id_from_auth()
    if not user_id:
        return _unauthenticated()

    now = datetime.now(timezone.utc)
    results = []
    with next(get_db_session()) as db:
        client = get_monzo_client()
        accounts = db.query(LinkedAccount).filter_by(user_id=user_id, is_active=True).all()
        for account in accounts:
            try:
                refresh_linked_account(db, client, account, now)
                results.append({"id": account.id, "status": "success"})
            except MonzoError as e:
                db.rollback()
                logger.error(f"[SYNC] Failed to refresh linked account {account.id}: {e}")
                results.append({"id": account.id, "status": "error", "error": str(e)})
    success = all(r["status"] == "success" for r in results)
    return jsonify({"success": success, "results": results})


@api_bp.route("/logging/config", methods=["GET"])
def logging_config():
    user_id = get_user_id_from_auth()
    if not user_id:
        return _unauthenticated()

    manager = get_logging_manager()
    return jsonify(
        {"config": manager.get_current_config(), "loggers": manager.get_available_loggers()}
    )


@api_bp.route("/logging/level", methods=["POST"])
def set_logging_level():
    """
    Change a logger's level at runtime. Expects JSON: {"level": "DEBUG", "logger_name": "potflow.automation"}
    """
    user_id = get_user_id_from_auth()
    if not user_id:
        return _unauthenticated()

    try:
        data = validate_request_json(LoggingConfigSchema, request.get_json(silent=True))
    except ValidationError as e:
        body, status = create_validation_error_response(e)
        return jsonify(body), status

    logger_name = data.get("logger_name", "potflow")
    get_logging_manager().set_logger_level(logger_name, data["level"])
    return jsonify({"success": True, "logger_name": logger_name, "level": data["level"]})
