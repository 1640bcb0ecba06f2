"""
Master data lookup.

Blueprint: master_data_bp
Prefix: /api/v1/master-data

Endpoints:
    GET /                 — populated data types with active counts
    GET /<data_type>      — entries (?search, ?parent, ?include_inactive, ?limit)
"""

from flask import Blueprint, jsonify, request

from helpdesk.middleware.actor_context import current_actor
from helpdesk.services import master_data_service
from helpdesk.utils.errors import register_domain_error_handlers
from helpdesk.utils.helpers import parse_bool_arg

master_data_bp = Blueprint("master_data", __name__, url_prefix="/api/v1/master-data")
register_domain_error_handlers(master_data_bp)


@master_data_bp.before_request
def _require_actor():
    current_actor()


@master_data_bp.route("", methods=["GET"])
def list_data_types():
    return jsonify({"items": master_data_service.list_data_types()})


@master_data_bp.route("/<string:data_type>", methods=["GET"])
def list_entries(data_type):
    try:
        limit = min(int(request.args.get("limit", 200)), 1000)
    except (ValueError, TypeError):
        limit = 200
    include_inactive = parse_bool_arg(request.args.get("include_inactive"))
    if include_inactive and current_actor().role != "admin":
        include_inactive = False
    items = master_data_service.search(
        data_type,
        term=request.args.get("search"),
        parent_code=request.args.get("parent"),
        include_inactive=include_inactive,
        limit=limit,
    )
    return jsonify({"items": items, "total": len(items)})
