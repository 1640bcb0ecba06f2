"""
Service catalog browsing (read-only).

Blueprint: catalog_bp
Prefix: /api/v1/catalog

Endpoints:
    GET /catalogs                    — active catalogs (?service_type)
    GET /catalogs/<id>/items         — active items of a catalog
    GET /items/<id>                  — one item
    GET /items/<id>/templates        — visible templates of an item
    GET /items/<id>/fields           — item questions with resolved options
    GET /templates/<id>/fields       — template questions with resolved options
"""

import logging

from flask import Blueprint, jsonify, request

from helpdesk.middleware.actor_context import current_actor
from helpdesk.models.catalog import FieldOwner
from helpdesk.services import catalog_service
from helpdesk.utils.errors import register_domain_error_handlers

logger = logging.getLogger(__name__)

catalog_bp = Blueprint("catalog", __name__, url_prefix="/api/v1/catalog")
register_domain_error_handlers(catalog_bp)


@catalog_bp.before_request
def _require_actor():
    current_actor()


@catalog_bp.route("/catalogs", methods=["GET"])
def list_catalogs():
    items = catalog_service.list_catalogs(service_type=request.args.get("service_type"))
    return jsonify({"items": items, "total": len(items)})


@catalog_bp.route("/catalogs/<int:catalog_id>/items", methods=["GET"])
def list_items(catalog_id):
    items = catalog_service.list_items(catalog_id)
    return jsonify({"items": items, "total": len(items)})


@catalog_bp.route("/items/<int:item_id>", methods=["GET"])
def get_item(item_id):
    return jsonify(catalog_service.get_item(item_id, active_only=True).to_dict())


@catalog_bp.route("/items/<int:item_id>/templates", methods=["GET"])
def list_templates(item_id):
    catalog_service.get_item(item_id, active_only=True)
    items = catalog_service.list_templates(item_id)
    return jsonify({"items": items, "total": len(items)})


@catalog_bp.route("/items/<int:item_id>/fields", methods=["GET"])
def item_fields(item_id):
    return jsonify({"items": catalog_service.describe_fields(FieldOwner.item(item_id))})


@catalog_bp.route("/templates/<int:template_id>/fields", methods=["GET"])
def template_fields(template_id):
    return jsonify({"items": catalog_service.describe_fields(FieldOwner.template(template_id))})
