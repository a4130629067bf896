"""SEC EDGAR company-facts adapter (XBRL us-gaap metrics)."""

from typing import Any

from marketdesk.providers.base import (
    FailureReason,
    ProviderClient,
    ProviderError,
    ProviderResult,
)

SEC_API_BASE = "https://data.sec.gov"

# SEC requires a descriptive User-Agent on every request
SEC_USER_AGENT = "marketdesk research@marketdesk.local"

# Known company name -> CIK. Unmapped names are reported as not_found.
COMPANY_CIK_MAP = {
    "apple": "0000320193",
    "microsoft": "0000789019",
    "tesla": "0001318605",
    "amazon": "0001018724",
    "google": "0001652044",
    "meta": "0001326801",
    "nvidia": "0001045810",
}

FACT_METRICS = [
    "Assets",
    "Liabilities",
    "StockholdersEquity",
    "Revenues",
    "NetIncomeLoss",
    "EarningsPerShareBasic",
]


def lookup_cik(company_name: str) -> str | None:
    name = company_name.strip().lower()
    if name in COMPANY_CIK_MAP:
        return COMPANY_CIK_MAP[name]
    # "Apple Inc." / "Tesla, Inc." style names
    first_word = name.replace(",", " ").split()[0] if name else ""
    return COMPANY_CIK_MAP.get(first_word)


class SECClient(ProviderClient):
    name = "sec_edgar"

    async def _company_facts(self, company_name: str) -> dict[str, Any]:
        cik = lookup_cik(company_name)
        if cik is None:
            raise ProviderError(
                FailureReason.NOT_FOUND, f"sec_edgar: no CIK mapping for {company_name}"
            )

        data = await self._get_json(
            f"{SEC_API_BASE}/api/xbrl/companyfacts/CIK{cik}.json",
            headers={"User-Agent": SEC_USER_AGENT},
        )
        facts = data.get("facts", {}).get("us-gaap", {})

        relevant: dict[str, Any] = {}
        for metric in FACT_METRICS:
            units = facts.get(metric, {}).get("units", {})
            values = units.get("USD") or units.get("USD/shares")
            if not values:
                continue
            latest = values[-1]
            relevant[metric] = {
                "value": latest.get("val"),
                "unit": "USD/shares" if "USD" not in units else "USD",
                "filed": latest.get("filed"),
            }
        return relevant

    async def company_facts(self, company_name: str) -> ProviderResult[dict[str, Any]]:
        """Latest value of each tracked us-gaap metric for a mapped company."""
        return await self.call("company_facts", self._company_facts, company_name)
