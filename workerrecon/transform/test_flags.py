"""
Unit tests for existence flags.

Run:
    pytest workerrecon/transform/test_flags.py -v
"""

from __future__ import annotations

from datetime import date

import polars as pl
import pytest

from workerrecon.transform.flags import (
    aggregate_flags,
    compliance_doc_flags,
    presence_flags,
    rule_predicate,
    terms_acceptance,
)

RULES = {
    "has_incorporation_doc": {"column": "category_label", "equals": "Incorporation"},
    "has_bank_verification_doc": {"column": "category_id", "equals": 20},
}


def _make_docs(rows: list[tuple]) -> pl.DataFrame:
    return pl.DataFrame(
        rows,
        schema={
            "entity_id": pl.Utf8,
            "category_label": pl.Utf8,
            "category_id": pl.Int64,
            "is_disabled": pl.Boolean,
        },
        orient="row",
    )


def _flags_of(df: pl.DataFrame, entity_id: str) -> dict:
    return df.filter(pl.col("entity_id") == entity_id).row(0, named=True)


# ---------------------------------------------------------------------------
# compliance_doc_flags
# ---------------------------------------------------------------------------

class TestComplianceDocFlags:
    def test_incorporation_only(self):
        out = compliance_doc_flags(_make_docs([("E2", "Incorporation", 5, False)]), RULES)
        flags = _flags_of(out, "E2")
        assert flags["has_incorporation_doc"] is True
        assert flags["has_bank_verification_doc"] is False

    def test_bank_verification_by_category_id(self):
        out = compliance_doc_flags(_make_docs([("E1", "Bank Letter", 20, False)]), RULES)
        assert _flags_of(out, "E1")["has_bank_verification_doc"] is True

    def test_disabled_documents_ignored(self):
        out = compliance_doc_flags(
            _make_docs([("E1", "Incorporation", 5, True), ("E2", "Incorporation", 5, False)]),
            RULES,
        )
        assert out["entity_id"].to_list() == ["E2"]

    def test_one_document_can_satisfy_two_flags(self):
        out = compliance_doc_flags(_make_docs([("E1", "Incorporation", 20, False)]), RULES)
        flags = _flags_of(out, "E1")
        assert flags["has_incorporation_doc"] and flags["has_bank_verification_doc"]

    def test_flags_never_null(self):
        out = compliance_doc_flags(_make_docs([("E1", None, None, None)]), RULES)
        flags = _flags_of(out, "E1")
        assert flags["has_incorporation_doc"] is False
        assert flags["has_bank_verification_doc"] is False

    def test_default_rules(self):
        out = compliance_doc_flags(_make_docs([("E1", "Incorporation", 20, False)]))
        assert {"has_incorporation_doc", "has_bank_verification_doc"} <= set(out.columns)


# ---------------------------------------------------------------------------
# aggregate_flags / rule_predicate
# ---------------------------------------------------------------------------

class TestAggregateFlags:
    def test_one_row_per_entity_sorted(self):
        children = pl.DataFrame({"entity_id": ["E2", "E1", "E2"], "x": [1, 2, 3]})
        out = aggregate_flags(children, {"has_big": pl.col("x") > 2})
        assert out["entity_id"].to_list() == ["E1", "E2"]
        assert out["has_big"].to_list() == [False, True]

    def test_empty_children_typed(self):
        children = pl.DataFrame(schema={"entity_id": pl.Utf8, "x": pl.Int64})
        out = aggregate_flags(children, {"a": pl.col("x") > 0, "b": pl.col("x") < 0})
        assert out.is_empty()
        assert out.schema == {"entity_id": pl.Utf8, "a": pl.Boolean, "b": pl.Boolean}

    def test_null_keys_dropped(self):
        children = pl.DataFrame({"entity_id": [None, "E1"], "x": [1, 1]})
        out = aggregate_flags(children, {"a": pl.col("x") == 1})
        assert out["entity_id"].to_list() == ["E1"]

    def test_in_rule(self):
        df = pl.DataFrame({"category_id": [20, 21, 22, None]})
        out = df.select(rule_predicate({"column": "category_id", "in": [20, 21]}))
        assert out.to_series().to_list() == [True, True, False, False]

    @pytest.mark.parametrize("rule", [
        {"equals": 1},
        {"column": "category_id"},
        {"column": "category_id", "matches": "x"},
    ])
    def test_invalid_rule_raises(self, rule):
        with pytest.raises(ValueError):
            rule_predicate(rule)


# ---------------------------------------------------------------------------
# presence_flags / terms_acceptance
# ---------------------------------------------------------------------------

class TestPresenceFlags:
    def test_entities_with_rows_flagged(self):
        log = pl.DataFrame({"entity_id": ["E1", "E1", "E3"]})
        out = presence_flags(log, "is_activity_logged")
        assert out["entity_id"].to_list() == ["E1", "E3"]
        assert out["is_activity_logged"].to_list() == [True, True]

    def test_where_filter(self):
        log = pl.DataFrame({"entity_id": ["E1", "E2"], "is_deleted": [True, False]})
        out = presence_flags(log, "has_active_alerts", where=~pl.col("is_deleted"))
        assert out["entity_id"].to_list() == ["E2"]

    def test_missing_entity_column_raises(self):
        with pytest.raises(ValueError, match="missing required column"):
            presence_flags(pl.DataFrame({"worker": ["E1"]}), "is_activity_logged")


class TestTermsAcceptance:
    def test_latest_acceptance_date(self):
        tos = pl.DataFrame({
            "entity_id": ["E1", "E1", "E2"],
            "is_accepted": [True, True, False],
            "created_date": [date(2023, 5, 1), date(2024, 5, 1), date(2024, 6, 1)],
        })
        out = terms_acceptance(tos)
        assert out.to_dicts() == [
            {"entity_id": "E1", "is_tos_accepted": True, "tos_acceptance_date": date(2024, 5, 1)},
        ]
