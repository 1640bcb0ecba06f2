"""Master Data Resolver tests: ordering, inactive filtering, search, injected sources."""

from flask import current_app

from factories import make_master_data
from helpdesk.models import db
from helpdesk.models.master_data import MasterDataEntry
from helpdesk.services import master_data_service
from helpdesk.services.master_data_service import (
    SqlMasterDataSource,
    StaticMasterDataSource,
    get_default_source,
)


def test_sql_source_orders_by_sort_order_then_name():
    make_master_data("branch", [
        ("BR-3", "Charlie", 2),
        ("BR-2", "Bravo", 1),
        ("BR-1", "Alpha", 1),
    ])
    codes = [o["code"] for o in SqlMasterDataSource().list_active("branch")]
    assert codes == ["BR-1", "BR-2", "BR-3"]


def test_sql_source_skips_inactive_entries():
    make_master_data("bank", [("B1", "Bank One"), ("B2", "Closed Bank", 0, False)])
    options = SqlMasterDataSource().list_active("bank")
    assert [o["code"] for o in options] == ["B1"]
    assert options[0] == {"code": "B1", "displayName": "Bank One", "metadata": {}}


def test_unknown_data_type_is_empty_list():
    assert SqlMasterDataSource().list_active("no_such_type") == []
    assert SqlMasterDataSource().list_active("") == []


def test_static_source_accepts_tuples_and_dicts():
    source = StaticMasterDataSource({
        "menu": [("M1", "Main"), {"code": "M2", "displayName": "Reports", "metadata": {"lvl": 2}}],
    })
    assert source.list_active("menu") == [
        {"code": "M1", "displayName": "Main", "metadata": {}},
        {"code": "M2", "displayName": "Reports", "metadata": {"lvl": 2}},
    ]
    assert source.list_active("other") == []


def test_static_source_returns_copies():
    source = StaticMasterDataSource({"menu": [("M1", "Main")]})
    source.list_active("menu")[0]["code"] = "changed"
    assert source.list_active("menu")[0]["code"] == "M1"


def test_default_source_is_registered_on_app():
    assert isinstance(get_default_source(), SqlMasterDataSource)
    assert current_app.extensions["master_data_source"] is get_default_source()


def test_list_active_uses_injected_source():
    source = StaticMasterDataSource({"terminal": [("T1", "Terminal 1")]})
    assert master_data_service.list_active("terminal", source)[0]["code"] == "T1"


class TestSearch:
    def _seed(self):
        make_master_data("branch", [
            ("BR-001", "Head Office"),
            ("BR-014", "Kantor Cabang Utama"),
            ("BR-027", "Cabang Selatan", 0, False),
        ])
        db.session.add(MasterDataEntry(
            data_type="terminal", code="ATM-014", display_name="ATM Utama", parent_code="BR-014",
        ))
        db.session.add(MasterDataEntry(
            data_type="terminal", code="ATM-001", display_name="ATM Lobby", parent_code="BR-001",
        ))
        db.session.commit()

    def test_term_matches_code_or_name_case_insensitive(self):
        self._seed()
        assert [r["code"] for r in master_data_service.search("branch", "cabang")] == ["BR-014"]
        assert [r["code"] for r in master_data_service.search("branch", "br-00")] == ["BR-001"]

    def test_include_inactive(self):
        self._seed()
        codes = {r["code"] for r in master_data_service.search("branch", "cabang", include_inactive=True)}
        assert codes == {"BR-014", "BR-027"}

    def test_parent_filter(self):
        self._seed()
        rows = master_data_service.search("terminal", parent_code="BR-014")
        assert [r["code"] for r in rows] == ["ATM-014"]
        assert rows[0]["parent_code"] == "BR-014"

    def test_list_data_types_counts_active_rows(self):
        self._seed()
        assert master_data_service.list_data_types() == [
            {"data_type": "branch", "count": 2},
            {"data_type": "terminal", "count": 2},
        ]
