"""
Static configuration for the reconciliation pipeline.

Every value can be overridden through the environment (or a .env file at the
repo root); operations take the same values as keyword arguments so callers
and tests never need to touch os.environ.
"""
import json
import os
from pathlib import Path

from dotenv import load_dotenv

_REPO_ROOT = Path(__file__).resolve().parents[1]

load_dotenv(_REPO_ROOT / ".env")


def _env_path(name: str, default: str) -> Path:
    value = os.environ.get(name, default)
    return Path(value) if Path(value).is_absolute() else _REPO_ROOT / value


def _env_list(name: str, default: list[str]) -> list[str]:
    raw = os.environ.get(name)
    if not raw:
        return list(default)
    return [item.strip() for item in raw.split(",") if item.strip()]


def _env_json(name: str, default):
    raw = os.environ.get(name)
    if not raw:
        return default
    return json.loads(raw)


RAW = _env_path("DATA_RAW", "data/raw/reconciliation")
PROCESSED = _env_path("DATA_PROCESSED", "data/processed")
OUTPUT_DIR = PROCESSED / "reconciliation"

# Authorized regional hubs
BUSINESS_UNITS = _env_list("RECON_BUSINESS_UNITS", [
    "EU_CZ", "EU_PL", "EU_TR", "EU_HR", "EU_FR", "EU_CH", "EU_GR", "EU_UK",
    "LATAM_BR", "LATAM_BR_CUR", "LATAM_BR_RIO",
    "APAC_CN", "APAC_WHN", "APAC_SGP", "APAC_MY", "APAC_VN", "APAC_JPN", "APAC_THAI",
])

WORKER_TYPE = os.environ.get("RECON_WORKER_TYPE", "Consultant")
ENGAGEMENT_STATUSES = _env_list("RECON_ENGAGEMENT_STATUSES", ["Active", "Offboarding", "Recruited"])
AGREEMENT_TYPE = os.environ.get("RECON_AGREEMENT_TYPE", "Freelance")
UNDEFINED_AGREEMENT = os.environ.get("RECON_UNDEFINED_AGREEMENT", "Undefined")
EXCLUDED_EMPLOYER = os.environ.get("RECON_EXCLUDED_EMPLOYER", "INTERNAL_SELF_EMP")

# ERP status dictionary record-type domain for supplier invoices
STATUS_DOMAIN = os.environ.get("RECON_STATUS_DOMAIN", "t_ord_invoice")

BANK_ACCOUNT_PURPOSE = os.environ.get("RECON_BANK_ACCOUNT_PURPOSE", "Invoices")
ADDRESS_TYPE = os.environ.get("RECON_ADDRESS_TYPE", "Invoicing")

# flag name -> rule; see workerrecon.transform.flags.rule_predicate
COMPLIANCE_FLAG_RULES: dict[str, dict] = _env_json("RECON_COMPLIANCE_FLAGS", {
    "has_incorporation_doc": {"column": "category_label", "equals": "Incorporation"},
    "has_bank_verification_doc": {"column": "category_id", "equals": 20},
})

# "latest_event" or "independent_max"
SUPPLIER_KEY_POLICY = os.environ.get("RECON_SUPPLIER_KEY_POLICY", "latest_event")
