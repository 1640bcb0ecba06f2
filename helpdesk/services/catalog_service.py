"""
Catalog Schema Store — service layer.

Centralises all ORM queries and mutations for Catalog, CatalogItem,
ItemTemplate and FieldDefinition so that blueprints remain HTTP-only.
Every write goes through ``transaction()``; that is the single owner of
commit/rollback in this module.

Schema invariants enforced on every administrative write:
  - a FieldDefinition is owned by exactly one item or template
  - field_name is unique among the active definitions of its owner
  - a choice field has exactly one options source (static list XOR data_type)
  - once any ticket answered a field, its field_type and is_required are frozen
  - catalog rows referenced by tickets are deactivated, never deleted
Violations raise SchemaConflictError; malformed input raises ValidationFailedError.
"""

import logging
import re

from sqlalchemy.exc import IntegrityError

from helpdesk.core.exceptions import (
    FieldError,
    NotFoundError,
    SchemaConflictError,
    ValidationFailedError,
)
from helpdesk.models import db
from helpdesk.models.catalog import (
    CHOICE_FIELD_TYPES,
    REQUEST_TYPES,
    SERVICE_TYPES,
    Catalog,
    CatalogItem,
    FieldDefinition,
    FieldOwner,
    FieldType,
    ItemTemplate,
    OwnerKind,
)
from helpdesk.models.ticket import Ticket, TicketFieldValue
from helpdesk.services.helpers.unit_of_work import transaction
from helpdesk.services.master_data_service import get_default_source

logger = logging.getLogger(__name__)

_FIELD_NAME_RE = re.compile(r"^[A-Za-z][A-Za-z0-9_]{0,99}$")

_CATALOG_ATTRS = ("name", "description", "service_type", "department_id", "is_active")
_ITEM_ATTRS = (
    "name", "description", "is_government_related", "requires_government_approval",
    "request_type", "is_active", "sort_order",
)
_TEMPLATE_ATTRS = (
    "name", "template_type", "requires_business_approval", "root_cause",
    "issue_type", "is_visible", "is_active", "sort_order",
)
_FIELD_ATTRS = (
    "field_name", "field_label", "field_type", "is_required", "sort_order",
    "placeholder", "default_value", "help_text", "validation_rules",
)
_OWNER_KEYS = ("owner_type", "owner_id", "item_id", "template_id")
_BOOL_ATTRS = frozenset({
    "is_active", "is_government_related", "requires_government_approval",
    "requires_business_approval", "is_visible", "is_required",
})
_INT_ATTRS = frozenset({"sort_order"})


# ──────────────────────────────────────────────────────────────────────────────
# Lookups
# ──────────────────────────────────────────────────────────────────────────────

def get_catalog(catalog_id: int) -> Catalog:
    catalog = db.session.get(Catalog, catalog_id)
    if not catalog:
        raise NotFoundError(resource="Catalog", resource_id=catalog_id)
    return catalog


def get_item(item_id: int, active_only: bool = False) -> CatalogItem:
    """Fetch a CatalogItem by PK.

    Raises:
        NotFoundError: If missing, or when ``active_only`` is set and the
            item or its catalog is inactive.
    """
    item = db.session.get(CatalogItem, item_id)
    if not item or (active_only and not (item.is_active and item.catalog.is_active)):
        raise NotFoundError(resource="CatalogItem", resource_id=item_id)
    return item


def get_template(template_id: int, active_only: bool = False) -> ItemTemplate:
    """Fetch an ItemTemplate by PK.

    Raises:
        NotFoundError: If missing, or inactive when ``active_only`` is set.
    """
    template = db.session.get(ItemTemplate, template_id)
    if not template or (active_only and not template.is_active):
        raise NotFoundError(resource="ItemTemplate", resource_id=template_id)
    return template


def get_field_definition(field_id: int) -> FieldDefinition:
    fd = db.session.get(FieldDefinition, field_id)
    if not fd:
        raise NotFoundError(resource="FieldDefinition", resource_id=field_id)
    return fd


def _ensure_owner_exists(owner: FieldOwner):
    if owner.kind is OwnerKind.ITEM:
        return get_item(owner.id)
    return get_template(owner.id)


def list_catalogs(service_type: str | None = None, include_inactive: bool = False) -> list[dict]:
    q = Catalog.query
    if service_type:
        q = q.filter_by(service_type=service_type)
    if not include_inactive:
        q = q.filter_by(is_active=True)
    return [c.to_dict() for c in q.order_by(Catalog.name).all()]


def list_items(catalog_id: int, include_inactive: bool = False) -> list[dict]:
    get_catalog(catalog_id)
    q = CatalogItem.query.filter_by(catalog_id=catalog_id)
    if not include_inactive:
        q = q.filter_by(is_active=True)
    return [i.to_dict() for i in q.order_by(CatalogItem.sort_order, CatalogItem.name).all()]


def list_templates(item_id: int, visible_only: bool = True) -> list[dict]:
    get_item(item_id)
    q = ItemTemplate.query.filter_by(item_id=item_id)
    if visible_only:
        q = q.filter_by(is_visible=True, is_active=True)
    return [t.to_dict() for t in q.order_by(ItemTemplate.sort_order, ItemTemplate.id).all()]


def list_field_definitions(owner: FieldOwner, include_inactive: bool = False) -> list[FieldDefinition]:
    """Return the owner's field definitions ordered by sort_order, then id.

    Raises:
        NotFoundError: If the owning item/template does not exist.
    """
    _ensure_owner_exists(owner)
    q = FieldDefinition.query.filter_by(owner_type=owner.kind.value, owner_id=owner.id)
    if not include_inactive:
        q = q.filter_by(is_active=True)
    return q.order_by(FieldDefinition.sort_order, FieldDefinition.id).all()


# ──────────────────────────────────────────────────────────────────────────────
# Option resolution
# ──────────────────────────────────────────────────────────────────────────────

def resolve_options(field_definition, source=None) -> list[dict]:
    """Return the ordered ``[{value, label, isDefault}]`` options of a field.

    Static lists are returned as stored; a ``data_type`` reference is
    dispatched to the Master Data Resolver. Free-form fields have no options.
    """
    default = field_definition.default_value
    if field_definition.options is not None:
        return [
            {
                "value": str(o["value"]),
                "label": o.get("label") or str(o["value"]),
                "isDefault": bool(o.get("isDefault")) or (default is not None and str(o["value"]) == default),
            }
            for o in field_definition.options
        ]
    if field_definition.data_type:
        source = source or get_default_source()
        return [
            {
                "value": entry["code"],
                "label": entry.get("displayName") or entry["code"],
                "isDefault": default is not None and entry["code"] == default,
            }
            for entry in source.list_active(field_definition.data_type)
        ]
    return []


def describe_fields(owner: FieldOwner, source=None) -> list[dict]:
    """Serialized active field definitions with resolved options, for form rendering."""
    described = []
    for fd in list_field_definitions(owner):
        d = fd.to_dict()
        d["options"] = resolve_options(fd, source)
        described.append(d)
    return described


def effective_owner(item: CatalogItem, template: ItemTemplate | None) -> FieldOwner:
    """The template owns the questions when one is chosen; otherwise the item does."""
    if template is not None:
        return FieldOwner.template(template.id)
    return FieldOwner.item(item.id)


# ──────────────────────────────────────────────────────────────────────────────
# Catalog administration
# ──────────────────────────────────────────────────────────────────────────────

def _require_name(data: dict, errors: list[FieldError], required: bool = True):
    if "name" not in data and not required:
        return
    name = (data.get("name") or "").strip()
    if not name:
        errors.append(FieldError("name", "required", "name is required"))
    elif len(name) > 200:
        errors.append(FieldError("name", "too_long", "name must be <= 200 chars"))
    else:
        data["name"] = name


def _check_attr_types(data: dict, errors: list[FieldError]):
    """Flags must be JSON booleans and sort_order an integer before they reach typed columns."""
    for key in sorted(_BOOL_ATTRS & data.keys()):
        if not isinstance(data[key], bool):
            errors.append(FieldError(key, "invalid_format", f"{key} must be true or false"))
    for key in sorted(_INT_ATTRS & data.keys()):
        if isinstance(data[key], bool) or not isinstance(data[key], int):
            errors.append(FieldError(key, "invalid_format", f"{key} must be an integer"))


def _raise_attr_type_errors(data: dict):
    errors: list[FieldError] = []
    _check_attr_types(data, errors)
    if errors:
        raise ValidationFailedError(errors)


def _check_catalog_input(data: dict, creating: bool):
    errors: list[FieldError] = []
    _require_name(data, errors, required=creating)
    _check_attr_types(data, errors)
    if "service_type" in data or creating:
        if data.get("service_type", "technical") not in SERVICE_TYPES:
            errors.append(FieldError(
                "service_type", "invalid_option",
                f"service_type must be one of {sorted(SERVICE_TYPES)}",
            ))
    if errors:
        raise ValidationFailedError(errors)


def create_catalog(data: dict) -> dict:
    _check_catalog_input(data, creating=True)
    catalog = Catalog(
        name=data["name"],
        description=data.get("description", ""),
        service_type=data.get("service_type", "technical"),
        department_id=data.get("department_id"),
        is_active=data.get("is_active", True),
    )
    with transaction():
        db.session.add(catalog)
    logger.info("Catalog created id=%s service_type=%s", catalog.id, catalog.service_type)
    return catalog.to_dict()


def update_catalog(catalog_id: int, data: dict) -> dict:
    catalog = get_catalog(catalog_id)
    _check_catalog_input(data, creating=False)
    with transaction():
        for attr in _CATALOG_ATTRS:
            if attr in data:
                setattr(catalog, attr, data[attr])
    logger.info("Catalog updated id=%s", catalog_id)
    return catalog.to_dict()


def delete_catalog(catalog_id: int) -> dict:
    """Delete an empty catalog; deactivate one that still owns inactive items.

    Raises:
        SchemaConflictError: If the catalog owns active items.
    """
    catalog = get_catalog(catalog_id)
    if catalog.items.filter_by(is_active=True).count():
        raise SchemaConflictError(f"Catalog {catalog_id} still owns active items")

    with transaction():
        if catalog.items.count():
            catalog.is_active = False
            result = {"deleted": False, "deactivated": True}
        else:
            db.session.delete(catalog)
            result = {"deleted": True, "deactivated": False}
    logger.info("Catalog removed id=%s result=%s", catalog_id, result)
    return result


# ── Items ─────────────────────────────────────────────────────────────────────

def _check_item_input(data: dict, creating: bool):
    errors: list[FieldError] = []
    _require_name(data, errors, required=creating)
    _check_attr_types(data, errors)
    if "request_type" in data and data["request_type"] not in REQUEST_TYPES:
        errors.append(FieldError(
            "request_type", "invalid_option",
            f"request_type must be one of {sorted(REQUEST_TYPES)}",
        ))
    if errors:
        raise ValidationFailedError(errors)


def create_item(catalog_id: int, data: dict) -> dict:
    get_catalog(catalog_id)
    _check_item_input(data, creating=True)
    item = CatalogItem(
        catalog_id=catalog_id,
        name=data["name"],
        description=data.get("description", ""),
        is_government_related=bool(data.get("is_government_related", False)),
        requires_government_approval=bool(data.get("requires_government_approval", False)),
        request_type=data.get("request_type", "service_request"),
        is_active=data.get("is_active", True),
        sort_order=data.get("sort_order", 0),
    )
    with transaction():
        db.session.add(item)
    logger.info("CatalogItem created id=%s catalog=%s", item.id, catalog_id)
    return item.to_dict()


def update_item(item_id: int, data: dict) -> dict:
    """Partial update. Approval flags only affect tickets created afterwards."""
    item = get_item(item_id)
    _check_item_input(data, creating=False)
    if "catalog_id" in data and data["catalog_id"] != item.catalog_id:
        get_catalog(data["catalog_id"])
    with transaction():
        for attr in _ITEM_ATTRS:
            if attr in data:
                setattr(item, attr, data[attr])
        if "catalog_id" in data:
            item.catalog_id = data["catalog_id"]
    logger.info("CatalogItem updated id=%s", item_id)
    return item.to_dict()


def delete_item(item_id: int) -> None:
    """Delete an item with its templates and field definitions.

    Raises:
        SchemaConflictError: If any ticket was raised against the item.
    """
    item = get_item(item_id)
    if Ticket.query.filter_by(item_id=item_id).first():
        raise SchemaConflictError(
            f"CatalogItem {item_id} is referenced by tickets; deactivate it instead"
        )
    template_ids = [t.id for t in item.templates.all()]
    with transaction():
        FieldDefinition.query.filter_by(owner_type="item", owner_id=item_id).delete()
        if template_ids:
            FieldDefinition.query.filter(
                FieldDefinition.owner_type == "template",
                FieldDefinition.owner_id.in_(template_ids),
            ).delete(synchronize_session=False)
            ItemTemplate.query.filter(ItemTemplate.id.in_(template_ids)).delete(
                synchronize_session=False
            )
        db.session.delete(item)
    logger.info("CatalogItem deleted id=%s templates=%s", item_id, len(template_ids))


# ── Templates ─────────────────────────────────────────────────────────────────

def create_template(item_id: int, data: dict) -> dict:
    get_item(item_id)
    errors: list[FieldError] = []
    _require_name(data, errors)
    _check_attr_types(data, errors)
    if errors:
        raise ValidationFailedError(errors)
    template = ItemTemplate(
        item_id=item_id,
        name=data["name"],
        template_type=data.get("template_type", "standard"),
        requires_business_approval=bool(data.get("requires_business_approval", False)),
        root_cause=data.get("root_cause"),
        issue_type=data.get("issue_type"),
        is_visible=data.get("is_visible", True),
        is_active=data.get("is_active", True),
        sort_order=data.get("sort_order", 0),
    )
    with transaction():
        db.session.add(template)
    logger.info("ItemTemplate created id=%s item=%s", template.id, item_id)
    return template.to_dict()


def update_template(template_id: int, data: dict) -> dict:
    template = get_template(template_id)
    errors: list[FieldError] = []
    _require_name(data, errors, required=False)
    _check_attr_types(data, errors)
    if errors:
        raise ValidationFailedError(errors)
    if "item_id" in data and data["item_id"] != template.item_id:
        raise SchemaConflictError("A template cannot be moved to another item", field="item_id")
    with transaction():
        for attr in _TEMPLATE_ATTRS:
            if attr in data:
                setattr(template, attr, data[attr])
    logger.info("ItemTemplate updated id=%s", template_id)
    return template.to_dict()


def delete_template(template_id: int) -> None:
    template = get_template(template_id)
    if Ticket.query.filter_by(template_id=template_id).first():
        raise SchemaConflictError(
            f"ItemTemplate {template_id} is referenced by tickets; deactivate it instead"
        )
    with transaction():
        FieldDefinition.query.filter_by(owner_type="template", owner_id=template_id).delete()
        db.session.delete(template)
    logger.info("ItemTemplate deleted id=%s", template_id)


# ──────────────────────────────────────────────────────────────────────────────
# Field definitions
# ──────────────────────────────────────────────────────────────────────────────

def _owner_from_data(data: dict) -> FieldOwner:
    """Derive the tagged owner from raw item_id/template_id input (exactly one)."""
    item_id = data.get("item_id")
    template_id = data.get("template_id")
    if item_id and template_id:
        raise SchemaConflictError(
            "A field belongs to an item or a template, not both", field="owner"
        )
    if item_id:
        return FieldOwner.item(int(item_id))
    if template_id:
        return FieldOwner.template(int(template_id))
    if data.get("owner_type") and data.get("owner_id"):
        try:
            return FieldOwner(OwnerKind(data["owner_type"]), int(data["owner_id"]))
        except ValueError:
            raise SchemaConflictError(
                f"Unknown owner_type '{data['owner_type']}'", field="owner"
            ) from None
    raise SchemaConflictError("A field must belong to an item or a template", field="owner")


def _normalize_options(raw) -> list[dict]:
    if not isinstance(raw, list):
        raise ValidationFailedError([FieldError("options", "invalid_format", "options must be a list")])
    normalized = []
    for entry in raw:
        if isinstance(entry, dict):
            if entry.get("value") in (None, ""):
                raise ValidationFailedError([
                    FieldError("options", "invalid_format", "every option needs a value")
                ])
            value = str(entry["value"]).strip()
            label = entry.get("label") or value
            is_default = bool(entry.get("isDefault", entry.get("is_default", False)))
        else:
            value = str(entry).strip()
            label, is_default = value, False
        normalized.append({"value": value, "label": label, "isDefault": is_default})

    values = [o["value"] for o in normalized]
    if len(values) != len(set(values)):
        raise SchemaConflictError("Option values must be unique within a field", field="options")
    return normalized


def _check_rules(rules) -> dict:
    if rules in (None, ""):
        return {}
    if not isinstance(rules, dict):
        raise ValidationFailedError([
            FieldError("validation_rules", "invalid_format", "validation_rules must be an object")
        ])
    errors: list[FieldError] = []
    for key in ("maxLength", "minLength"):
        if key in rules:
            try:
                if int(rules[key]) < 0:
                    raise ValueError
            except (TypeError, ValueError):
                errors.append(FieldError("validation_rules", "invalid_format", f"{key} must be a non-negative integer"))
    for key in ("min", "max"):
        if key in rules and rules[key] is not None:
            try:
                float(rules[key])
            except (TypeError, ValueError):
                errors.append(FieldError("validation_rules", "invalid_format", f"{key} must be numeric"))
    if rules.get("pattern") is not None:
        if not isinstance(rules["pattern"], str):
            errors.append(FieldError("validation_rules", "invalid_format", "pattern must be a string"))
        else:
            try:
                re.compile(rules["pattern"])
            except re.error as exc:
                errors.append(FieldError("validation_rules", "invalid_format", f"pattern is not a valid regex: {exc}"))
    if errors:
        raise ValidationFailedError(errors)
    return dict(rules)


def _check_field_type(value) -> str:
    if value not in FieldType.values():
        raise ValidationFailedError([
            FieldError("field_type", "invalid_option", f"field_type must be one of {FieldType.values()}")
        ])
    return value


def _check_field_name(value) -> str:
    name = (value or "").strip()
    if not _FIELD_NAME_RE.match(name):
        raise ValidationFailedError([
            FieldError(
                "field_name", "invalid_format",
                "field_name must start with a letter and contain only letters, digits and underscores",
            )
        ])
    return name


def _check_options_source(field_type: str, options, data_type) -> None:
    if options is not None and data_type:
        raise SchemaConflictError(
            "A field takes options from a static list or a master-data type, not both",
            field="options",
        )
    is_choice = FieldType(field_type) in CHOICE_FIELD_TYPES
    if is_choice and options is None and not data_type:
        raise SchemaConflictError(
            f"A {field_type} field needs options or a master-data type", field="options"
        )
    if not is_choice and (options is not None or data_type):
        raise SchemaConflictError(
            f"A {field_type} field does not take options", field="options"
        )


def _check_default_value(fd: FieldDefinition) -> None:
    """Reject a default that the field itself would not accept."""
    from helpdesk.services.field_validation import FieldValueError, validate

    if fd.default_value in (None, "") or fd.data_type:
        return
    options = resolve_options(fd) if FieldType(fd.field_type) in CHOICE_FIELD_TYPES else None
    try:
        validate(fd, fd.default_value, options)
    except FieldValueError as exc:
        raise ValidationFailedError([FieldError("default_value", exc.code, exc.message)]) from None


def _check_name_available(owner: FieldOwner, field_name: str, exclude_id: int | None = None) -> None:
    q = FieldDefinition.query.filter_by(
        owner_type=owner.kind.value, owner_id=owner.id, field_name=field_name, is_active=True
    )
    if exclude_id is not None:
        q = q.filter(FieldDefinition.id != exclude_id)
    if q.first():
        raise SchemaConflictError(
            f"Field '{field_name}' already exists for {owner}", field="field_name"
        )


def is_field_referenced(field_id: int) -> bool:
    """True once any ticket answered this field (its schema is then frozen)."""
    return (
        db.session.query(TicketFieldValue.id)
        .filter_by(field_definition_id=field_id)
        .first()
        is not None
    )


def _commit_field(fd: FieldDefinition) -> None:
    try:
        with transaction():
            db.session.add(fd)
    except IntegrityError as exc:
        logger.warning("FieldDefinition write rejected by constraint: %s", exc.orig)
        raise SchemaConflictError(
            f"Field '{fd.field_name}' conflicts with an existing definition", field="field_name"
        ) from exc


def create_field_definition(data: dict, owner: FieldOwner | None = None) -> dict:
    """Persist a new field definition for an item or a template.

    Args:
        data: Validated input dict from blueprint.
        owner: Tagged owner; when omitted it is derived from item_id /
            template_id in ``data`` (exactly one must be given).

    Returns:
        Serialized field definition dict.

    Raises:
        NotFoundError: If the owner does not exist.
        SchemaConflictError: On dual ownership, duplicate field_name or an
            inconsistent options source.
        ValidationFailedError: On malformed attributes.
    """
    if owner is None:
        owner = _owner_from_data(data)
    elif any(data.get(k) for k in _OWNER_KEYS):
        if _owner_from_data(data) != owner:
            raise SchemaConflictError("Conflicting owner in request body", field="owner")
    _ensure_owner_exists(owner)
    _raise_attr_type_errors(data)

    field_name = _check_field_name(data.get("field_name"))
    field_type = _check_field_type(data.get("field_type", FieldType.TEXT.value))
    options = _normalize_options(data["options"]) if data.get("options") is not None else None
    data_type = (data.get("data_type") or "").strip() or None
    _check_options_source(field_type, options, data_type)
    _check_name_available(owner, field_name)

    fd = FieldDefinition(
        field_name=field_name,
        field_label=data.get("field_label") or field_name,
        field_type=field_type,
        is_required=bool(data.get("is_required", False)),
        sort_order=data.get("sort_order", 0),
        placeholder=data.get("placeholder", ""),
        default_value=data.get("default_value"),
        help_text=data.get("help_text", ""),
        validation_rules=_check_rules(data.get("validation_rules")),
        options=options,
        data_type=data_type,
        is_active=True,
    )
    fd.owner = owner
    _check_default_value(fd)
    _commit_field(fd)
    logger.info("FieldDefinition created id=%s owner=%s name=%s", fd.id, owner, field_name)
    return fd.to_dict()


def update_field_definition(field_id: int, data: dict) -> dict:
    """Apply a partial update to a field definition.

    Raises:
        SchemaConflictError: When moving the field to another owner, when
            changing type or required-ness after tickets answered it, or on
            name/options invariants.
    """
    fd = get_field_definition(field_id)
    _raise_attr_type_errors(data)

    if any(k in data for k in _OWNER_KEYS):
        if _owner_from_data(data) != fd.owner:
            raise SchemaConflictError("A field cannot be moved to another owner", field="owner")

    new_type = _check_field_type(data["field_type"]) if "field_type" in data else fd.field_type
    new_required = bool(data["is_required"]) if "is_required" in data else fd.is_required
    if (new_type != fd.field_type or new_required != fd.is_required) and is_field_referenced(field_id):
        raise SchemaConflictError(
            f"Field '{fd.field_name}' already has answers; its type and required flag are frozen. "
            "Deprecate it and create a new field instead.",
            field="field_type" if new_type != fd.field_type else "is_required",
        )

    if "field_name" in data:
        data["field_name"] = _check_field_name(data["field_name"])
        if fd.is_active and data["field_name"] != fd.field_name:
            _check_name_available(fd.owner, data["field_name"], exclude_id=fd.id)

    new_options = fd.options
    if "options" in data:
        new_options = _normalize_options(data["options"]) if data["options"] is not None else None
    new_data_type = fd.data_type
    if "data_type" in data:
        new_data_type = (data["data_type"] or "").strip() or None
    _check_options_source(new_type, new_options, new_data_type)

    if "validation_rules" in data:
        data["validation_rules"] = _check_rules(data["validation_rules"])

    for attr in _FIELD_ATTRS:
        if attr in data:
            setattr(fd, attr, data[attr])
    fd.field_type = new_type
    fd.is_required = new_required
    fd.options = new_options
    fd.data_type = new_data_type
    try:
        _check_default_value(fd)
    except ValidationFailedError:
        db.session.rollback()
        raise
    _commit_field(fd)
    logger.info("FieldDefinition updated id=%s", field_id)
    return fd.to_dict()


def deprecate_field_definition(field_id: int) -> dict:
    """Retire a field: it stops appearing on forms, historical answers keep pointing at it."""
    fd = get_field_definition(field_id)
    with transaction():
        fd.is_active = False
    logger.info("FieldDefinition deprecated id=%s name=%s", field_id, fd.field_name)
    return fd.to_dict()


def delete_field_definition(field_id: int) -> None:
    """Delete a field that no ticket has answered yet.

    Raises:
        SchemaConflictError: If any TicketFieldValue references the field.
    """
    fd = get_field_definition(field_id)
    if is_field_referenced(field_id):
        raise SchemaConflictError(
            f"Field '{fd.field_name}' already has answers; deprecate it instead"
        )
    with transaction():
        db.session.delete(fd)
    logger.info("FieldDefinition deleted id=%s", field_id)
