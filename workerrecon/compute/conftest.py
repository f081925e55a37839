"""
Shared staging snapshot for the compute tests.

Eligible entities: E1, E2, E3 (Undefined agreement, latest defined one is
Freelance), E4. Excluded: E5 inactive, E6 unit outside the allow-list,
E7 wrong worker type, E8 internal self-employed, E9 Undefined agreement whose
latest defined agreement is Permanent.
"""
from __future__ import annotations

from datetime import date

import polars as pl
import pytest


def _entities() -> pl.DataFrame:
    def row(eid, unit="EU_FR", wtype="Consultant", status="Active", agreement="Freelance",
            active=True, employer="ACME", first=None, last=None, email=None, approver=None):
        return {
            "entity_id": eid, "business_unit": unit, "worker_type": wtype,
            "engagement_status": status, "agreement_type": agreement, "is_active": active,
            "employed_by": employer, "first_name": first, "last_name": last,
            "primary_email": email, "approver_id": approver,
            "active_end_time": date(2030, 1, 1),
        }

    rows = [
        row("E1", first="Ana", last="Lopez", email="ana@example.com", approver="E4"),
        row("E2", unit="EU_PL", status="Recruited"),
        row("E3", unit="APAC_SGP", status="Offboarding", agreement="Undefined"),
        row("E4", unit="EU_UK", first="Bo", last="Chen", email="bo@example.com"),
        row("E5", active=False),
        row("E6", unit="US_NY"),
        row("E7", wtype="Employee"),
        row("E8", employer="INTERNAL_SELF_EMP"),
        row("E9", agreement="Undefined"),
    ]
    return pl.DataFrame(rows, schema={
        "entity_id": pl.Utf8, "business_unit": pl.Utf8, "worker_type": pl.Utf8,
        "engagement_status": pl.Utf8, "agreement_type": pl.Utf8, "is_active": pl.Boolean,
        "employed_by": pl.Utf8, "first_name": pl.Utf8, "last_name": pl.Utf8,
        "primary_email": pl.Utf8, "approver_id": pl.Utf8, "active_end_time": pl.Date,
    })


def _agreement_history() -> pl.DataFrame:
    return pl.DataFrame({
        "entity_id": ["E3", "E3", "E9", "E9"],
        "agreement_type": ["Freelance", "Undefined", "Freelance", "Permanent"],
        "active_end_time": [date(2024, 1, 1), date(2025, 1, 1), date(2022, 1, 1), date(2024, 6, 1)],
    })


def _business_units() -> pl.DataFrame:
    return pl.DataFrame({
        "business_unit": ["EU_FR", "EU_PL", "APAC_SGP", "EU_UK", "US_NY"],
        "is_active_entity": [True, True, True, True, True],
        "country_code": ["FR", "PL", "SG", "GB", "US"],
        "country_name": ["France", "Poland", "Singapore", "United Kingdom", "United States"],
        "region": ["EMEA", "EMEA", "APAC", "EMEA", "AMER"],
    })


def _bank_accounts() -> pl.DataFrame:
    cols = ["entity_id", "record_id", "sub_type_label", "is_disabled",
            "bank_name", "bic", "iban", "banking_system_label"]
    rows = [
        ("E1", 10, "Invoices", False, "Bank A", "BICA", "IBAN10", "SEPA"),
        ("E1", 15, "Invoices", False, "Bank B", "BICB", "IBAN15", "SEPA"),
        ("E1", 20, "Invoices", True, "Bank C", "BICC", "IBAN20", "SEPA"),
        ("E1", 30, "Salary", False, "Bank D", "BICD", "IBAN30", "SEPA"),
        ("E2", 40, "Salary", False, "Bank E", "BICE", "IBAN40", "SEPA"),
        ("E4", 50, "Invoices", None, "Bank F", "BICF", "IBAN50", "SWIFT"),
    ]
    return pl.DataFrame(rows, schema={
        "entity_id": pl.Utf8, "record_id": pl.Int64, "sub_type_label": pl.Utf8,
        "is_disabled": pl.Boolean, "bank_name": pl.Utf8, "bic": pl.Utf8,
        "iban": pl.Utf8, "banking_system_label": pl.Utf8,
    }, orient="row")


def _addresses() -> pl.DataFrame:
    rows = [
        ("E1", 100, "Invoicing", "1 Rue A", "75001", "Paris", "France"),
        ("E1", 120, "Invoicing", "2 Rue B", "75002", "Paris", "France"),
        ("E1", 130, "Home", "3 Rue C", "75003", "Paris", "France"),
        ("E3", 200, "Invoicing", "3 Orchard Rd", "238801", "Singapore", "Singapore"),
    ]
    return pl.DataFrame(rows, schema={
        "entity_id": pl.Utf8, "record_id": pl.Int64, "address_type_label": pl.Utf8,
        "street_line": pl.Utf8, "zip_code": pl.Utf8, "city_name": pl.Utf8,
        "country_name": pl.Utf8,
    }, orient="row")


def _compliance_docs() -> pl.DataFrame:
    return pl.DataFrame({
        "entity_id": ["E2", "E1", "E1"],
        "category_label": ["Incorporation", "Bank Letter", "Incorporation"],
        "category_id": [5, 20, 5],
        "is_disabled": [False, False, True],
    })


def _transactions() -> pl.DataFrame:
    return pl.DataFrame({
        "transaction_id": [1, 2, 3, 4, 5, 6],
        "entity_id": ["E3", "E1", "E1", "E2", "E1", "E1"],
        "cross_system_ref_code": ["INV-001", "INV-002", "INV-003", "INV-004", "INV-005", "INV-006"],
        "is_draft": [False, False, False, False, True, False],
        "status_id": [1, 2, 2, 2, 3, 2],
        "invoice_date": [date(2024, 1, d) for d in range(1, 7)],
        "created_date": [date(2024, 1, d) for d in range(2, 8)],
    })


def _ledger() -> pl.DataFrame:
    return pl.DataFrame({
        "ledger_invoice_id": [901, 902, 903, 904, 905, 906, 907],
        "external_ref_code": ["INV-002", "INV-003", "INV-003", "INV-004", "INV-005", "INV-006", "INV-006"],
        "external_supplier_key": ["S1", "S1", "S1", "S9", "S1", "S1", "S1"],
        "invoice_code": ["C901", "C902", "C903", "C904", "C905", "C906", "C907"],
        "status_code": [10, 10, 20, 10, 99, 10, 20],
        "active": [False, False, True, True, True, True, True],
        "amount_net": [100.0, 200.0, 210.0, 300.0, 400.0, 500.0, 500.0],
        "amount_gross": [120.0, 240.0, 252.0, 360.0, 480.0, 600.0, 600.0],
        "currency": ["EUR"] * 7,
    })


def _supplier_links() -> pl.DataFrame:
    return pl.DataFrame({
        "entity_id": ["E1", "E2"],
        "external_supplier_key": ["S1", "S2"],
        "created_date": [date(2023, 1, 1), date(2023, 3, 1)],
        "updated_date": [date(2023, 2, 1), date(2023, 3, 2)],
    })


def _status_dictionary() -> pl.DataFrame:
    return pl.DataFrame({
        "domain": ["t_ord_invoice", "t_ord_invoice", "t_other"],
        "status_code": ["10", "20", "99"],
        "label": ["Received", "Paid", "Other domain label"],
    })


@pytest.fixture
def relations() -> dict[str, pl.DataFrame]:
    return {
        "entities": _entities(),
        "agreement_history": _agreement_history(),
        "business_units": _business_units(),
        "bank_accounts": _bank_accounts(),
        "addresses": _addresses(),
        "compliance_docs": _compliance_docs(),
        "transactions": _transactions(),
        "ledger": _ledger(),
        "supplier_links": _supplier_links(),
        "status_dictionary": _status_dictionary(),
        "timesheets": pl.DataFrame({"entity_id": ["E1", "E1"]}),
        "notifications": pl.DataFrame({"entity_id": ["E1", "E2"], "is_deleted": [True, False]}),
        "terms_of_service": pl.DataFrame({
            "entity_id": ["E1", "E1", "E2"],
            "is_accepted": [True, True, False],
            "created_date": [date(2023, 5, 1), date(2024, 5, 1), date(2024, 6, 1)],
        }),
    }
