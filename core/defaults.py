# core/defaults.py
"""Built-in terms and benchmark profiles used when nothing is persisted."""
from typing import Dict, List

from core.domain import AppSettings, BenchmarkProfile, StandardTerm
from core.enums import TermCategory

BORROWER_NAME_TERM = "Borrower Name"
DEFAULT_PROFILE_ID = "us_large_cap"
LEGACY_PROFILE_NAME = "Imported Defaults"

_TERM_ROWS = [
    # General
    ("gen_1", BORROWER_NAME_TERM, "Legal name of the borrower", TermCategory.GENERAL),
    ("gen_2", "Facility Amount", "Total committed amount", TermCategory.GENERAL),
    ("gen_3", "Maturity Date", "Final maturity date", TermCategory.GENERAL),
    ("gen_4", "Interest Rate / Margin", "Applicable rate spreads", TermCategory.GENERAL),
    ("gen_5", "Governing Law", "Jurisdiction", TermCategory.GENERAL),
    # Financial covenants
    ("fin_1", "Max Total Net Leverage", "Maximum allowed Total Net Leverage Ratio", TermCategory.FINANCIAL),
    ("fin_2", "Min Interest Coverage", "Minimum allowed Interest Coverage Ratio", TermCategory.FINANCIAL),
    # Negative covenants
    ("cov_1", "Limitation on Indebtedness", "Restrictions on incurring additional debt", TermCategory.COVENANTS),
    ("cov_2", "Limitation on Liens", "Restrictions on creating liens", TermCategory.COVENANTS),
    ("cov_3", "Limitation on Restricted Payments", "Dividends, buybacks, and distributions", TermCategory.COVENANTS),
    ("cov_4", "Limitation on Investments", "Permitted investments and acquisitions", TermCategory.COVENANTS),
    ("cov_5", "Limitation on Asset Sales", "Restrictions on selling assets", TermCategory.COVENANTS),
    ("cov_6", "Transactions with Affiliates", "Rules for dealing with related parties", TermCategory.COVENANTS),
    # Baskets
    ("bsk_1", "General RP Basket", "Fixed dollar amount for Restricted Payments", TermCategory.BASKETS),
    ("bsk_2", "Available Amount / Builder Basket", "Retained ECF or Net Income that builds capacity", TermCategory.BASKETS),
    ("bsk_3", "Starter Basket Amount", "Initial amount in the Builder Basket", TermCategory.BASKETS),
    ("bsk_4", "General Investment Basket", "Fixed basket for general investments", TermCategory.BASKETS),
    ("bsk_5", "Ratio Debt Threshold", "Leverage level permitting unlimited ratio debt", TermCategory.BASKETS),
    # Definitions
    ("def_1", "EBITDA Definition", "Key add-backs and exclusions (synergies, one-offs)", TermCategory.DEFINITIONS),
    ("def_2", "Consolidated Net Income", "Definition of CNI", TermCategory.DEFINITIONS),
    # Risk / legal
    ("rsk_1", "Events of Default", "Payment default, bankruptcy, cross-default thresholds", TermCategory.RISK),
    ("rsk_2", "Collateral Grant", "Scope of assets pledged", TermCategory.RISK),
    ("rsk_3", "Guarantors", "Entities providing guarantees", TermCategory.RISK),
]

MARKET_BENCHMARK: Dict[str, str] = {
    "Max Total Net Leverage": "4.50x",
    "Min Interest Coverage": "2.50x",
    "General RP Basket": "$25,000,000",
    "Available Amount / Builder Basket": "50% of CNI (Cumulative)",
    "Limitation on Indebtedness": "Permitted Refinancing + Ratio Debt allowed if < Opening Leverage",
    "EBITDA Definition": "Standard add-backs capped at 20% of EBITDA",
    "Events of Default": "Customary, with Cross-Default > $10M",
    "Governing Law": "New York",
    "Starter Basket Amount": "$10,000,000",
}


def default_terms() -> List[StandardTerm]:
    return [
        StandardTerm(id=term_id, name=name, description=description, category=category)
        for term_id, name, description, category in _TERM_ROWS
    ]


def default_profiles() -> List[BenchmarkProfile]:
    return [
        BenchmarkProfile(
            id=DEFAULT_PROFILE_ID,
            name="US Large Cap (Standard)",
            data=dict(MARKET_BENCHMARK),
        ),
        BenchmarkProfile(
            id="us_middle_market",
            name="US Middle Market",
            data={
                **MARKET_BENCHMARK,
                "Max Total Net Leverage": "3.50x",
                "Min Interest Coverage": "3.00x",
                "General RP Basket": "$5,000,000",
                "Starter Basket Amount": "$0",
                "Events of Default": "Tightened cure periods",
            },
        ),
        BenchmarkProfile(
            id="canada_standard",
            name="Canada Standard",
            data={
                **MARKET_BENCHMARK,
                "Governing Law": "Ontario / Canadian Federal",
                "Max Total Net Leverage": "4.00x",
                "General RP Basket": "CAD $10,000,000",
                "Starter Basket Amount": "CAD $5,000,000",
            },
        ),
    ]


def default_settings() -> AppSettings:
    """Fresh copy of the system defaults on every call."""
    return AppSettings(
        terms=default_terms(),
        benchmark_profiles=default_profiles(),
        active_profile_id=DEFAULT_PROFILE_ID,
    )
