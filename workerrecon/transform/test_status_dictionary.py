"""
Unit tests for status code translation.

Run:
    pytest workerrecon/transform/test_status_dictionary.py -v
"""

from __future__ import annotations

import polars as pl

from workerrecon.transform.status_dictionary import status_lookup, translate_status


def _make_dictionary() -> pl.DataFrame:
    return pl.DataFrame({
        "domain": ["t_ord_invoice", "t_ord_invoice", "t_other"],
        "status_code": ["10", "20", "30"],
        "label": ["Received", "Paid", "Rejected elsewhere"],
    })


class TestStatusLookup:
    def test_scoped_to_domain(self):
        out = status_lookup(_make_dictionary(), domain="t_ord_invoice")
        assert out["status_code"].to_list() == ["10", "20"]

    def test_duplicate_code_keeps_first_label_and_warns(self, capsys):
        dictionary = pl.DataFrame({
            "domain": ["d", "d"],
            "status_code": [5, 5],
            "label": ["Zeta", "Alpha"],
        })
        out = status_lookup(dictionary, domain="d")
        assert out.to_dicts() == [{"status_code": "5", "status_label": "Alpha"}]
        assert "duplicate" in capsys.readouterr().err


class TestTranslateStatus:
    def test_integer_codes_match_string_dictionary(self):
        lookup = status_lookup(_make_dictionary(), domain="t_ord_invoice")
        df = pl.DataFrame({"status_code": [20, 10]})
        out = translate_status(df, lookup)
        assert out["status_label"].to_list() == ["Paid", "Received"]

    def test_unknown_and_null_codes_yield_null(self):
        lookup = status_lookup(_make_dictionary(), domain="t_ord_invoice")
        df = pl.DataFrame({"status_code": ["30", None, "10"]})
        out = translate_status(df, lookup)
        assert out["status_label"].to_list() == [None, None, "Received"]

    def test_row_count_preserved_and_custom_column(self):
        lookup = status_lookup(_make_dictionary(), domain="t_ord_invoice")
        df = pl.DataFrame({"code": ["10", "10", "20"]})
        out = translate_status(df, lookup, code_column="code", label_column="erp_status")
        assert out.height == 3
        assert out.columns == ["code", "erp_status"]
