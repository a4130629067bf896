"""Entity extraction - turns a free-text query into an EntityDescriptor."""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator
from pydantic.alias_generators import to_camel

from marketdesk.agent.llm import TextGenerator, parse_json_object
from marketdesk.logging import log

EXTRACTION_PROMPT = """You are an entity extraction system for financial queries. Extract company information from the user's query.

For comparison queries (e.g., "Tesla vs Apple", "compare Microsoft and Google"):
- Set isComparison to true
- List every company in "companies" with companyName and ticker
- Also set the first company as the top-level companyName and ticker

For single company queries:
- Set isComparison to false
- Extract companyName, ticker, sector, country

Treat any common name as a company (e.g., "apple" means Apple Inc., not the fruit).
Return a JSON object with keys companyName, ticker, sector, country, isComparison, companies.
Leave fields empty if not found."""


def _clean(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


class _EntityModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )

    @field_validator("company_name", "ticker", "sector", "country", mode="before", check_fields=False)
    @classmethod
    def _blank_to_none(cls, value: Any) -> str | None:
        return _clean(value)

    @field_validator("ticker", mode="after", check_fields=False)
    @classmethod
    def _upper_ticker(cls, value: str | None) -> str | None:
        return value.upper() if value else value


class CompanyRef(_EntityModel):
    company_name: str | None = None
    ticker: str | None = None

    @property
    def is_empty(self) -> bool:
        return not (self.company_name or self.ticker)

    @property
    def display_name(self) -> str:
        return self.company_name or self.ticker or "unknown"


def _company_ref(item: Any) -> CompanyRef | None:
    """Best-effort CompanyRef; a bare string is read as a ticker, anything else unusable is skipped."""
    if isinstance(item, CompanyRef):
        return item
    if isinstance(item, str):
        item = {"ticker": item}
    if not isinstance(item, dict):
        return None
    try:
        return CompanyRef.model_validate(item)
    except ValidationError:
        return None


class EntityDescriptor(_EntityModel):
    """
    Structured view of a query, created once and shared read-only by every task.

    A comparison always carries at least two companies and its top-level
    name/ticker mirror the first one; anything claiming a comparison with
    fewer companies is downgraded to a single-entity descriptor.
    """

    company_name: str | None = None
    ticker: str | None = None
    sector: str | None = None
    country: str | None = None
    is_comparison: bool = False
    companies: list[CompanyRef] = Field(default_factory=list)

    @model_validator(mode="before")
    @classmethod
    def _normalise(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = dict(data)

        raw_companies = data.pop("companies", None)
        if not isinstance(raw_companies, list):
            raw_companies = []
        refs = []
        for item in raw_companies:
            ref = _company_ref(item)
            if ref is not None and not ref.is_empty:
                refs.append(ref)
        data["companies"] = refs

        comparison_key = "isComparison" if "isComparison" in data else "is_comparison"
        is_comparison = data.get(comparison_key)
        if isinstance(is_comparison, str):
            is_comparison = is_comparison.strip().lower() in ("true", "yes", "1")
        is_comparison = bool(is_comparison)
        if is_comparison and len(refs) < 2:
            is_comparison = False
        data[comparison_key] = is_comparison

        if is_comparison:
            # The first company wins; the top level only fills its gaps
            name_key = "companyName" if "companyName" in data else "company_name"
            first = CompanyRef(
                company_name=refs[0].company_name or data.get(name_key),
                ticker=refs[0].ticker or data.get("ticker"),
            )
            refs[0] = first
            data[name_key] = first.company_name
            data["ticker"] = first.ticker

        return data

    @property
    def is_empty(self) -> bool:
        return not (self.company_name or self.ticker or self.companies)

    @property
    def display_name(self) -> str:
        return self.company_name or self.ticker or ""


class EntityExtractor:
    """One JSON-mode generation call per query; failures yield an empty descriptor."""

    def __init__(self, llm: TextGenerator):
        self.llm = llm

    async def extract(self, query: str) -> EntityDescriptor:
        log("router", f"Extracting entities: {query[:100]}")

        try:
            reply = await self.llm.generate(EXTRACTION_PROMPT, query, json_mode=True)
            entity = EntityDescriptor.model_validate(parse_json_object(reply))
        except Exception as e:
            # A missing entity is a valid outcome; dependent tasks simply don't activate
            log("router", f"Entity extraction failed: {e}", level="warning")
            return EntityDescriptor()

        log(
            "router",
            "Extracted entity",
            company=entity.company_name,
            ticker=entity.ticker,
            comparison=entity.is_comparison,
            companies=len(entity.companies),
        )
        return entity
