"""
Catalog administration.

Blueprint: admin_catalog_bp
Prefix: /api/v1/admin

Endpoints (role admin):
  Catalogs:
    GET/POST        /catalogs                     — list (incl. inactive) / create
    PUT/DELETE      /catalogs/<cid>               — update / delete-or-deactivate
  Items:
    POST            /catalogs/<cid>/items         — create item
    PUT/DELETE      /items/<iid>                  — update / delete
  Templates:
    POST            /items/<iid>/templates        — create template
    PUT/DELETE      /templates/<tid>              — update / delete
  Field definitions:
    GET/POST        /items/<iid>/fields           — list (incl. deprecated) / create
    GET/POST        /templates/<tid>/fields       — list (incl. deprecated) / create
    PUT/DELETE      /fields/<fid>                 — update / delete (unanswered only)
    POST            /fields/<fid>/deprecate       — retire a field
"""

import logging

from flask import Blueprint, jsonify

from helpdesk.blueprints import json_body
from helpdesk.core.exceptions import UnauthorizedError
from helpdesk.middleware.actor_context import current_actor
from helpdesk.models.catalog import FieldOwner
from helpdesk.services import catalog_service
from helpdesk.utils.errors import register_domain_error_handlers

logger = logging.getLogger(__name__)

admin_catalog_bp = Blueprint("admin_catalog", __name__, url_prefix="/api/v1/admin")
register_domain_error_handlers(admin_catalog_bp)


@admin_catalog_bp.before_request
def _require_admin():
    actor = current_actor()
    if actor.role != "admin":
        raise UnauthorizedError(actor.id, "catalog_admin", "admin role required")


# ── Catalogs ─────────────────────────────────────────────────────────────────

@admin_catalog_bp.route("/catalogs", methods=["GET"])
def list_catalogs():
    items = catalog_service.list_catalogs(include_inactive=True)
    return jsonify({"items": items, "total": len(items)})


@admin_catalog_bp.route("/catalogs", methods=["POST"])
def create_catalog():
    return jsonify(catalog_service.create_catalog(json_body())), 201


@admin_catalog_bp.route("/catalogs/<int:cid>", methods=["PUT"])
def update_catalog(cid):
    return jsonify(catalog_service.update_catalog(cid, json_body()))


@admin_catalog_bp.route("/catalogs/<int:cid>", methods=["DELETE"])
def delete_catalog(cid):
    return jsonify(catalog_service.delete_catalog(cid))


# ── Items ────────────────────────────────────────────────────────────────────

@admin_catalog_bp.route("/catalogs/<int:cid>/items", methods=["POST"])
def create_item(cid):
    return jsonify(catalog_service.create_item(cid, json_body())), 201


@admin_catalog_bp.route("/items/<int:iid>", methods=["PUT"])
def update_item(iid):
    return jsonify(catalog_service.update_item(iid, json_body()))


@admin_catalog_bp.route("/items/<int:iid>", methods=["DELETE"])
def delete_item(iid):
    catalog_service.delete_item(iid)
    return "", 204


# ── Templates ────────────────────────────────────────────────────────────────

@admin_catalog_bp.route("/items/<int:iid>/templates", methods=["POST"])
def create_template(iid):
    return jsonify(catalog_service.create_template(iid, json_body())), 201


@admin_catalog_bp.route("/templates/<int:tid>", methods=["PUT"])
def update_template(tid):
    return jsonify(catalog_service.update_template(tid, json_body()))


@admin_catalog_bp.route("/templates/<int:tid>", methods=["DELETE"])
def delete_template(tid):
    catalog_service.delete_template(tid)
    return "", 204


# ── Field definitions ────────────────────────────────────────────────────────

def _list_fields(owner: FieldOwner):
    fields = catalog_service.list_field_definitions(owner, include_inactive=True)
    return jsonify({"items": [f.to_dict() for f in fields], "total": len(fields)})


@admin_catalog_bp.route("/items/<int:iid>/fields", methods=["GET"])
def list_item_fields(iid):
    return _list_fields(FieldOwner.item(iid))


@admin_catalog_bp.route("/templates/<int:tid>/fields", methods=["GET"])
def list_template_fields(tid):
    return _list_fields(FieldOwner.template(tid))


@admin_catalog_bp.route("/items/<int:iid>/fields", methods=["POST"])
def create_item_field(iid):
    fd = catalog_service.create_field_definition(json_body(), owner=FieldOwner.item(iid))
    return jsonify(fd), 201


@admin_catalog_bp.route("/templates/<int:tid>/fields", methods=["POST"])
def create_template_field(tid):
    fd = catalog_service.create_field_definition(json_body(), owner=FieldOwner.template(tid))
    return jsonify(fd), 201


@admin_catalog_bp.route("/fields/<int:fid>", methods=["PUT"])
def update_field(fid):
    return jsonify(catalog_service.update_field_definition(fid, json_body()))


@admin_catalog_bp.route("/fields/<int:fid>", methods=["DELETE"])
def delete_field(fid):
    catalog_service.delete_field_definition(fid)
    return "", 204


@admin_catalog_bp.route("/fields/<int:fid>/deprecate", methods=["POST"])
def deprecate_field(fid):
    return jsonify(catalog_service.deprecate_field_definition(fid))
