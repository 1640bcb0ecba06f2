"""
Catalog, admin catalog and master data API tests (HTTP level).
"""

import pytest

from factories import as_user, make_catalog, make_field, make_item, make_master_data, make_template


# ═════════════════════════════════════════════════════════════════════════════
# Browsing
# ═════════════════════════════════════════════════════════════════════════════


class TestCatalogBrowse:
    def test_requires_actor(self, client):
        assert client.get("/api/v1/catalog/catalogs").status_code == 401

    def test_lists_active_catalogs_by_service_type(self, client, users):
        make_catalog("ATM Services", "technical")
        make_catalog("KASDA", "government")
        make_catalog("Retired", "technical", is_active=False)
        res = client.get("/api/v1/catalog/catalogs?service_type=technical",
                         headers=as_user(users.requester))
        assert res.status_code == 200
        assert [c["name"] for c in res.get_json()["items"]] == ["ATM Services"]

    def test_items_and_templates(self, client, users):
        catalog = make_catalog()
        item = make_item(catalog)
        make_item(catalog, name="Hidden", is_active=False)
        make_template(item, name="Branch channel")
        headers = as_user(users.requester)

        items = client.get(f"/api/v1/catalog/catalogs/{catalog.id}/items", headers=headers).get_json()
        assert [i["name"] for i in items["items"]] == ["ATM Cash Jam"]
        templates = client.get(f"/api/v1/catalog/items/{item.id}/templates", headers=headers)
        assert [t["name"] for t in templates.get_json()["items"]] == ["Branch channel"]

    def test_inactive_item_is_404(self, client, users):
        item = make_item(is_active=False)
        res = client.get(f"/api/v1/catalog/items/{item.id}", headers=as_user(users.requester))
        assert res.status_code == 404

    def test_fields_come_with_resolved_options(self, client, users):
        item = make_item()
        make_master_data("branch", [("BR-001", "Head Office"), ("BR-014", "Cabang Utama")])
        make_field(item, "branch", "dropdown", data_type="branch", is_required=True, sort_order=1)
        make_field(item, "note", "textarea", sort_order=2)
        res = client.get(f"/api/v1/catalog/items/{item.id}/fields", headers=as_user(users.requester))
        fields = res.get_json()["items"]
        assert [f["field_name"] for f in fields] == ["branch", "note"]
        assert [o["value"] for o in fields[0]["options"]] == ["BR-001", "BR-014"]
        assert fields[1]["options"] == []

    def test_template_fields(self, client, users):
        template = make_template(make_item())
        make_field(template, "employeeId", validation_rules={"pattern": "[0-9]{6}"})
        res = client.get(f"/api/v1/catalog/templates/{template.id}/fields",
                         headers=as_user(users.requester))
        assert res.get_json()["items"][0]["validation_rules"] == {"pattern": "[0-9]{6}"}


class TestMasterDataApi:
    @pytest.fixture(autouse=True)
    def branches(self):
        make_master_data("branch", [
            ("BR-001", "Head Office", 1),
            ("BR-014", "Kantor Cabang Utama", 2),
            ("BR-027", "Cabang Selatan", 3, False),
        ])

    def test_data_types(self, client, users):
        res = client.get("/api/v1/master-data", headers=as_user(users.requester))
        assert res.get_json()["items"] == [{"data_type": "branch", "count": 2}]

    def test_search(self, client, users):
        res = client.get("/api/v1/master-data/branch?search=cabang", headers=as_user(users.requester))
        assert [e["code"] for e in res.get_json()["items"]] == ["BR-014"]

    def test_include_inactive_is_admin_only(self, client, users):
        url = "/api/v1/master-data/branch?include_inactive=true"
        assert client.get(url, headers=as_user(users.requester)).get_json()["total"] == 2
        assert client.get(url, headers=as_user(users.admin)).get_json()["total"] == 3

    def test_unknown_type_is_empty(self, client, users):
        res = client.get("/api/v1/master-data/nothing", headers=as_user(users.requester))
        assert res.status_code == 200
        assert res.get_json()["items"] == []


# ═════════════════════════════════════════════════════════════════════════════
# Administration
# ═════════════════════════════════════════════════════════════════════════════


class TestAdminCatalogApi:
    def test_non_admin_is_403(self, client, users):
        res = client.post("/api/v1/admin/catalogs", json={"name": "X"}, headers=as_user(users.manager))
        assert res.status_code == 403
        assert res.get_json()["code"] == "ERR_FORBIDDEN"

    def test_no_actor_is_401(self, client):
        assert client.get("/api/v1/admin/catalogs").status_code == 401

    def test_build_a_form_end_to_end(self, client, users):
        headers = as_user(users.admin)
        catalog = client.post("/api/v1/admin/catalogs",
                              json={"name": "KASDA", "service_type": "government"}, headers=headers)
        assert catalog.status_code == 201
        cid = catalog.get_json()["id"]

        item = client.post(f"/api/v1/admin/catalogs/{cid}/items",
                           json={"name": "User access", "is_government_related": True}, headers=headers)
        assert item.status_code == 201
        iid = item.get_json()["id"]

        template = client.post(f"/api/v1/admin/items/{iid}/templates",
                               json={"name": "Branch", "requires_business_approval": True},
                               headers=headers)
        assert template.status_code == 201
        tid = template.get_json()["id"]

        field = client.post(f"/api/v1/admin/templates/{tid}/fields", json={
            "field_name": "accessLevel",
            "field_label": "Access level",
            "field_type": "radio",
            "is_required": True,
            "options": ["viewer", "operator"],
        }, headers=headers)
        assert field.status_code == 201
        assert field.get_json()["owner_type"] == "template"

        listed = client.get(f"/api/v1/admin/templates/{tid}/fields", headers=headers).get_json()
        assert listed["total"] == 1

    def test_duplicate_field_name_is_409(self, client, users):
        item = make_item()
        headers = as_user(users.admin)
        body = {"field_name": "terminalId", "field_type": "text"}
        assert client.post(f"/api/v1/admin/items/{item.id}/fields", json=body, headers=headers).status_code == 201
        res = client.post(f"/api/v1/admin/items/{item.id}/fields", json=body, headers=headers)
        assert res.status_code == 409
        assert res.get_json()["code"] == "ERR_CONFLICT_SCHEMA"

    def test_invalid_field_type_is_400(self, client, users):
        item = make_item()
        res = client.post(f"/api/v1/admin/items/{item.id}/fields",
                          json={"field_name": "x", "field_type": "signature"},
                          headers=as_user(users.admin))
        assert res.status_code == 400

    def test_non_string_pattern_is_400(self, client, users):
        item = make_item()
        res = client.post(f"/api/v1/admin/items/{item.id}/fields",
                          json={"field_name": "code", "validation_rules": {"pattern": 123}},
                          headers=as_user(users.admin))
        assert res.status_code == 400
        assert res.get_json()["details"]["errors"][0]["field"] == "validation_rules"

    def test_mistyped_item_attributes_are_400(self, client, users):
        item = make_item()
        res = client.put(f"/api/v1/admin/items/{item.id}",
                         json={"is_government_related": "yes", "sort_order": "abc"},
                         headers=as_user(users.admin))
        assert res.status_code == 400
        fields = {e["field"] for e in res.get_json()["details"]["errors"]}
        assert fields == {"is_government_related", "sort_order"}

    def test_update_deprecate_and_delete_field(self, client, users):
        item = make_item()
        fd = make_field(item, "note")
        headers = as_user(users.admin)

        res = client.put(f"/api/v1/admin/fields/{fd.id}", json={"field_label": "Notes"}, headers=headers)
        assert res.get_json()["field_label"] == "Notes"
        res = client.post(f"/api/v1/admin/fields/{fd.id}/deprecate", headers=headers)
        assert res.get_json()["is_active"] is False
        assert client.delete(f"/api/v1/admin/fields/{fd.id}", headers=headers).status_code == 204
        assert client.put(f"/api/v1/admin/fields/{fd.id}", json={}, headers=headers).status_code == 404

    def test_delete_catalog_with_active_items_is_409(self, client, users):
        item = make_item()
        res = client.delete(f"/api/v1/admin/catalogs/{item.catalog_id}", headers=as_user(users.admin))
        assert res.status_code == 409

    def test_delete_template_and_item(self, client, users):
        item = make_item()
        template = make_template(item)
        headers = as_user(users.admin)
        assert client.delete(f"/api/v1/admin/templates/{template.id}", headers=headers).status_code == 204
        assert client.delete(f"/api/v1/admin/items/{item.id}", headers=headers).status_code == 204

    def test_admin_list_includes_inactive(self, client, users):
        make_catalog("Retired", is_active=False)
        res = client.get("/api/v1/admin/catalogs", headers=as_user(users.admin))
        assert [c["name"] for c in res.get_json()["items"]] == ["Retired"]
