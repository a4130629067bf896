"""Tests for analysis widgets over mocked providers."""

import asyncio

import httpx
import pytest

from marketdesk.agent.entities import CompanyRef, EntityDescriptor
from marketdesk.widgets import analyst_consensus, comparison, company_snapshot, crypto
from marketdesk.widgets import day_trader, financial_analyst, investment_thesis, ma_specialist
from marketdesk.widgets import macro_sector, market_sentiment, news_impact, peer_comparison
from marketdesk.widgets import portfolio, risk_flags
from marketdesk.widgets.base import TaskFailure
from marketdesk.widgets.peer_comparison import PeerMetrics, industry_averages, rankings

from conftest import FIXED_NOW, FakeGenerator, json_reply


def fmp_quotes(prices: dict[str, float], routes: dict | None = None):
    """
    Handler serving FMP quotes for the given symbols and 404 for everything else.

    `routes` maps extra URL paths to JSON bodies.
    """
    routes = routes or {}

    def handler(request: httpx.Request) -> httpx.Response:
        path = request.url.path
        if path in routes:
            return httpx.Response(200, json=routes[path])
        if path.startswith("/api/v3/quote/"):
            symbol = path.rsplit("/", 1)[-1]
            if symbol in prices:
                return httpx.Response(
                    200, json=[{"symbol": symbol, "name": f"{symbol} Inc", "price": prices[symbol]}]
                )
        return httpx.Response(404, json={})

    return handler


def gdelt_articles(*titles: str):
    return {
        "articles": [
            {
                "title": title,
                "url": f"https://example.com/{i}",
                "domain": "example.com",
                "seendate": "20240501T100000Z",
                "language": "English",
            }
            for i, title in enumerate(titles)
        ]
    }


def run(widget, entity: EntityDescriptor, ctx):
    return asyncio.run(widget.run(entity, ctx))


class TestCompanySnapshot:
    def test_merges_core_chart_and_sec_facts(self, widget_ctx):
        """Core facts, the daily chart and SEC facts all land in one snapshot."""

        def handler(request):
            if request.url.host == "www.alphavantage.co":
                function = request.url.params["function"]
                if function == "GLOBAL_QUOTE":
                    return httpx.Response(
                        200,
                        json={
                            "Global Quote": {
                                "01. symbol": "AAPL",
                                "05. price": "190.5",
                                "09. change": "1.5",
                                "10. change percent": "0.79",
                            }
                        },
                    )
                if function == "OVERVIEW":
                    return httpx.Response(
                        200,
                        json={"Symbol": "AAPL", "Name": "Apple Inc", "PERatio": "30.1"},
                    )
                return httpx.Response(
                    200,
                    json={
                        "Time Series (Daily)": {
                            "2024-04-29": {"4. close": "188.0", "5. volume": "100"},
                            "2024-04-30": {"4. close": "190.5", "5. volume": "200"},
                        }
                    },
                )
            if request.url.host == "data.sec.gov":
                assert request.url.path == "/api/xbrl/companyfacts/CIK0000320193.json"
                return httpx.Response(
                    200,
                    json={
                        "facts": {
                            "us-gaap": {
                                "Revenues": {
                                    "units": {"USD": [{"val": 383285000000, "filed": "2023-11-03"}]}
                                }
                            }
                        }
                    },
                )
            return httpx.Response(404, json={})

        llm = FakeGenerator(
            json_reply(
                {
                    "summary": "Apple is steady.",
                    "kpis": [{"name": "Revenue", "value": 383.3, "unit": "B USD"}, "P/E"],
                    "peers": ["Microsoft"],
                }
            )
        )
        entity = EntityDescriptor(company_name="Apple", ticker="AAPL")

        data = run(company_snapshot, entity, widget_ctx(handler, llm))

        assert data.summary == "Apple is steady."
        assert (data.price_data.price, data.price_data.change) == (190.5, 1.5)
        assert [(p.date, p.close) for p in data.chart_data] == [
            ("2024-04-29", 188.0),
            ("2024-04-30", 190.5),
        ]
        assert [(k.name, k.value) for k in data.kpis] == [("Revenue", "383.3"), ("P/E", "N/A")]
        assert data.peers == ["Microsoft"]
        assert [s.name for s in data.sources] == ["alpha_vantage", "SEC EDGAR"]
        # Market cap and ROE came from nowhere
        assert data.estimated is True
        assert "383285000000" in llm.calls[0][1]

    def test_all_providers_failing_is_a_task_failure(self, widget_ctx):
        """Nothing from any provider fails the task before the model is asked."""
        llm = FakeGenerator()
        entity = EntityDescriptor(company_name="Xyz Corp", ticker="XYZ")

        with pytest.raises(TaskFailure, match="All data providers failed"):
            run(company_snapshot, entity, widget_ctx(llm=llm))

        assert llm.calls == []


class TestCrypto:
    def test_prices_without_model_call(self, widget_ctx):
        """Crypto prices need no model call."""
        def handler(request):
            assert request.url.params["ids"] == "bitcoin,ethereum"
            return httpx.Response(
                200,
                json={
                    "bitcoin": {"usd": 60000, "usd_24h_change": 1.5},
                    "ethereum": {"usd": 3000.5, "usd_24h_change": -2},
                },
            )

        llm = FakeGenerator()
        data = run(crypto, EntityDescriptor(), widget_ctx(handler, llm))

        assert data.summary == "Current cryptocurrency prices for Bitcoin, Ethereum"
        assert [(p.name, p.price, p.change24h) for p in data.prices] == [
            ("Bitcoin", 60000.0, 1.5),
            ("Ethereum", 3000.5, -2.0),
        ]
        assert data.last_updated == FIXED_NOW.isoformat()
        assert llm.calls == []

    def test_provider_failure(self, widget_ctx):
        """A failed price lookup fails the task."""
        with pytest.raises(TaskFailure):
            run(crypto, EntityDescriptor(), widget_ctx())


class TestMacroSector:
    def test_indicators_and_explanations(self, widget_ctx):
        """Indicators with data get their explanations."""
        def handler(request):
            series_id = request.url.params["series_id"]
            if series_id == "CPIAUCSL":
                observations = [
                    {"date": f"2024-01-{i % 28 + 1:02d}", "value": str(300 + i)} for i in range(100)
                ]
            elif series_id == "DGS10":
                observations = [{"date": "2024-04-30", "value": "4.6"}]
            else:
                observations = [{"date": "2024-04-30", "value": "."}]
            return httpx.Response(200, json={"observations": observations})

        llm = FakeGenerator(
            json_reply({"summary": "Rates are high.", "indicators": [{"explanation": "Inflation."}]})
        )
        data = run(macro_sector, EntityDescriptor(), widget_ctx(handler, llm))

        names = [i.name for i in data.indicators]
        assert names == ["Consumer Price Index", "10-Year Treasury Yield"]
        cpi, yield_10y = data.indicators
        assert len(cpi.chart_data) == 90
        assert cpi.value == 399.0
        assert cpi.explanation == "Inflation."
        assert yield_10y.explanation == ""
        assert data.summary == "Rates are high."
        assert "the broad market" in llm.calls[0][1]

    def test_no_series_is_a_task_failure(self, widget_ctx):
        """No series at all fails the task."""
        with pytest.raises(TaskFailure):
            run(macro_sector, EntityDescriptor(), widget_ctx())


class TestNewsImpact:
    def test_falls_back_to_gdelt(self, widget_ctx):
        """A rejected NewsAPI key falls back to GDELT."""
        seen = []

        def handler(request):
            seen.append(request.url.host)
            if request.url.host == "newsapi.org":
                return httpx.Response(401, json={"message": "bad key"})
            return httpx.Response(
                200,
                json={
                    "articles": [
                        {
                            "title": "Apple beats estimates",
                            "url": "https://example.com/a",
                            "domain": "example.com",
                            "seendate": "20240501T100000Z",
                            "language": "English",
                        }
                    ]
                },
            )

        llm = FakeGenerator(
            json_reply(
                {
                    "summary": "Positive coverage.",
                    "news": [
                        {"title": "Apple beats estimates", "sentiment": "Bullish"},
                        {"sentiment": "neg"},
                    ],
                }
            )
        )
        data = run(news_impact, EntityDescriptor(company_name="Apple"), widget_ctx(handler, llm))

        assert seen == ["newsapi.org", "api.gdeltproject.org"]
        assert [(n.title, n.sentiment) for n in data.news] == [("Apple beats estimates", "pos")]
        assert data.sources[0].name == "GDELT DOC 2.0"

    def test_no_news_anywhere(self, widget_ctx):
        """No news from either source fails the task."""
        with pytest.raises(TaskFailure, match="No recent news found for Apple"):
            run(news_impact, EntityDescriptor(company_name="Apple"), widget_ctx())


class TestComparison:
    def test_missing_ticker_is_recorded_not_fatal(self, widget_ctx):
        """A company without a ticker is recorded as failed."""
        llm = FakeGenerator(
            json_reply(
                {
                    "summary": "Apple is larger.",
                    "winner": [{"category": "Valuation", "company": "Apple"}, {"category": "x"}],
                }
            )
        )
        entity = EntityDescriptor(
            is_comparison=True,
            companies=[
                CompanyRef(company_name="Apple", ticker="AAPL"),
                CompanyRef(company_name="Nowhere Inc"),
            ],
        )

        data = run(comparison, entity, widget_ctx(fmp_quotes({"AAPL": 150.0}), llm))

        assert [c.ticker for c in data.companies] == ["AAPL"]
        assert data.companies[0].price == 150.0
        assert data.failed == {"Nowhere Inc": "No ticker for Nowhere Inc"}
        assert [(w.category, w.company) for w in data.winner] == [("Valuation", "Apple")]

    def test_non_json_reply_uses_fallback_shape(self, widget_ctx):
        """A reply that is not JSON keeps the fetched companies and no winners."""
        entity = EntityDescriptor(
            is_comparison=True,
            companies=[CompanyRef(ticker="AAPL"), CompanyRef(ticker="MSFT")],
        )
        ctx = widget_ctx(fmp_quotes({"AAPL": 150.0, "MSFT": 400.0}), FakeGenerator("not json"))

        data = run(comparison, entity, ctx)

        assert data.summary == "Analysis format error"
        assert data.winner == []
        assert len(data.companies) == 2

    def test_no_companies_fetched(self, widget_ctx):
        """No company data at all fails the task."""
        entity = EntityDescriptor(
            is_comparison=True,
            companies=[CompanyRef(ticker="AAA"), CompanyRef(ticker="BBB")],
        )

        with pytest.raises(TaskFailure, match="Could not fetch data for any companies"):
            run(comparison, entity, widget_ctx())


class TestPortfolio:
    def test_values_positions_at_assumed_shares(self, widget_ctx):
        """Positions are valued at the assumed share count."""
        llm = FakeGenerator(
            json_reply(
                {
                    "summary": "Concentrated.",
                    "positions": [{"ticker": "aapl", "allocation": 140, "risk": "EXTREME"}],
                    "diversificationScore": "n/a",
                }
            )
        )
        ctx = widget_ctx(fmp_quotes({"AAPL": 150.0}), llm, portfolio_assumed_shares=10)

        data = run(portfolio, EntityDescriptor(company_name="Apple", ticker="AAPL"), ctx)

        assert data.total_value == 1500.0
        assert data.assumed_shares == 10
        assert data.assumed_shares_placeholder is True
        position = data.positions[0]
        assert position.allocation == 100.0
        assert position.risk == "medium"
        assert data.diversification_score == 0.0
        assert data.to_data()["totalValue"] == 1500.0


class TestAnalystConsensus:
    def test_surprise_history(self):
        """Surprises are computed per quarter."""
        rows = [
            {"date": "2024-04-01", "estimated": 2.0, "actual": 2.5},
            {"date": "2024-01-01", "estimated": 0.0, "actual": 0.1},
        ]

        history = analyst_consensus.surprise_history(rows)

        assert history[0].surprise == 0.5
        assert history[0].surprise_percent == 25.0
        # Zero estimate has no meaningful percentage
        assert history[1].surprise_percent == 0.0

    def test_surprise_history_limit(self):
        """Only the latest four quarters are kept."""
        rows = [{"date": str(i), "estimated": 1.0, "actual": 1.0} for i in range(8)]

        assert len(analyst_consensus.surprise_history(rows)) == 4

    def test_revenue_growth(self):
        """Growth compares the first two estimates."""
        assert analyst_consensus.revenue_growth([{"revenue_avg": 110.0}, {"revenue_avg": 100.0}]) == (
            pytest.approx(10.0)
        )
        assert analyst_consensus.revenue_growth([{"revenue_avg": 110.0}]) == 0.0
        assert analyst_consensus.revenue_growth([{"revenue_avg": 1.0}, {"revenue_avg": 0.0}]) == 0.0

    def test_requires_ticker(self, widget_ctx):
        """Consensus needs a ticker."""
        with pytest.raises(TaskFailure, match="Ticker required"):
            run(analyst_consensus, EntityDescriptor(company_name="Apple"), widget_ctx())


class TestPeerComparison:
    def test_averages_and_rankings(self):
        """Averages skip missing values and rankings order peers."""
        companies = [
            PeerMetrics(ticker="A", name="A", pe=10.0, roe=0.2, debt_to_equity=1.0, market_cap=100.0),
            PeerMetrics(ticker="B", name="B", pe=20.0, roe=0.3, debt_to_equity=12.0),
            PeerMetrics(ticker="C", name="C", pe=-5.0),
        ]

        averages = industry_averages(companies)
        ranks = rankings(companies)

        assert averages["pe"] == pytest.approx(25.0 / 3)
        assert averages["marketCap"] == 100.0
        assert [r.ticker for r in ranks["valuation"]] == ["A", "B"]
        assert [r.ticker for r in ranks["profitability"]] == ["B", "A"]
        assert [(r.ticker, r.score) for r in ranks["financialHealth"]] == [("A", 90.0), ("B", 0.0)]
        assert ranks["growth"] == []

    def test_empty_averages(self):
        """No peers means no averages."""
        assert industry_averages([]) == {
            "pe": None,
            "roe": None,
            "debtToEquity": None,
            "marketCap": None,
        }

    def test_run_with_peers(self, widget_ctx):
        """Peers exclude the target and unknown tickers."""
        quotes = fmp_quotes({"AAPL": 150.0, "MSFT": 400.0})

        def handler(request):
            if request.url.path.endswith("/stock_peers"):
                return httpx.Response(200, json=[{"symbol": "AAPL", "peersList": ["AAPL", "MSFT", "ZZZ"]}])
            return quotes(request)

        data = run(
            peer_comparison,
            EntityDescriptor(ticker="AAPL"),
            widget_ctx(handler, FakeGenerator("Apple trades at a premium.")),
        )

        assert data.target.ticker == "AAPL"
        assert [p.ticker for p in data.peers] == ["MSFT"]
        assert data.summary == "Apple trades at a premium."

    def test_target_unavailable(self, widget_ctx):
        """A target without data fails the task."""
        with pytest.raises(TaskFailure, match="Could not fetch data for AAPL"):
            run(peer_comparison, EntityDescriptor(ticker="AAPL"), widget_ctx())


class TestFinancialAnalyst:
    def test_statements_and_ratios_feed_the_analysis(self, widget_ctx):
        """Statements and ratios reach the prompt and the reply is mapped field by field."""
        handler = fmp_quotes(
            {"AAPL": 190.0},
            routes={
                "/api/v3/income-statement/AAPL": [
                    {"date": "2023-09-30", "revenue": 383285000000, "netIncome": 96995000000}
                ],
                "/api/v3/ratios/AAPL": [{"date": "2023-09-30", "returnOnEquity": 1.56}],
            },
        )
        llm = FakeGenerator(
            json_reply(
                {
                    "summary": "Margins are expanding.",
                    "financialMetrics": {"revenueGrowth": "-2.8%"},
                    "ratios": {"roe": 1.56},
                    "valuation": "rich",
                    "earningsQuality": ["High cash conversion", 3],
                }
            )
        )

        data = run(financial_analyst, EntityDescriptor(ticker="AAPL"), widget_ctx(handler, llm))

        assert data.summary == "Margins are expanding."
        assert data.financial_metrics == {"revenueGrowth": "-2.8%"}
        assert data.ratios == {"roe": 1.56}
        assert data.valuation is None
        assert data.earnings_quality == ["High cash conversion", "3"]
        prompt = llm.calls[0][1]
        assert "383285000000" in prompt
        assert "1.56" in prompt
        assert llm.calls[0][2] is True

    def test_non_json_reply_uses_fallback_shape(self, widget_ctx):
        """A reply that is not JSON still produces a widget."""
        handler = fmp_quotes({}, routes={"/api/v3/ratios/AAPL": [{"returnOnEquity": 1.5}]})

        data = run(
            financial_analyst,
            EntityDescriptor(ticker="AAPL"),
            widget_ctx(handler, FakeGenerator("not json")),
        )

        assert data.summary == "Analysis format error"
        assert data.earnings_quality == []

    def test_no_statements_is_a_task_failure(self, widget_ctx):
        """Neither statements nor ratios fails the task."""
        ctx = widget_ctx(fmp_quotes({"AAPL": 1.0}))

        with pytest.raises(TaskFailure, match="No financial statements available for AAPL"):
            run(financial_analyst, EntityDescriptor(ticker="AAPL"), ctx)


class TestDayTrader:
    def test_intraday_chart_is_capped(self, widget_ctx):
        """Bars become the chart, capped at the most recent fifty."""
        bars = [
            {
                "date": f"2024-05-01 {15 - i // 12:02d}:{(i % 12) * 5:02d}:00",
                "close": 190.0 - i,
                "volume": 1000,
            }
            for i in range(60)
        ]
        handler = fmp_quotes({"AAPL": 190.0}, routes={"/api/v3/historical-chart/5min/AAPL": bars})
        llm = FakeGenerator(
            json_reply(
                {
                    "summary": "Fading into the close.",
                    "priceAction": {"trend": "down"},
                    "tradingSetups": [{"setup": "short the bounce"}, "junk"],
                }
            )
        )

        data = run(day_trader, EntityDescriptor(ticker="AAPL"), widget_ctx(handler, llm))

        assert len(data.intraday_chart) == 50
        first = data.intraday_chart[0]
        assert (first.time, first.price, first.volume) == ("2024-05-01 15:00:00", 190.0, 1000.0)
        assert data.price_action == {"trend": "down"}
        assert data.technical_indicators is None
        assert data.trading_setups == [{"setup": "short the bounce"}]
        assert data.summary == "Fading into the close."

    def test_quote_without_bars_is_enough(self, widget_ctx):
        """A quote alone still yields an analysis with an empty chart."""
        ctx = widget_ctx(fmp_quotes({"AAPL": 190.0}), FakeGenerator(json_reply({})))

        data = run(day_trader, EntityDescriptor(ticker="AAPL"), ctx)

        assert data.intraday_chart == []
        assert data.summary == "Intraday analysis for AAPL"

    def test_requires_ticker(self, widget_ctx):
        """Day trading needs a ticker."""
        with pytest.raises(TaskFailure, match="Ticker required for day trading analysis"):
            run(day_trader, EntityDescriptor(company_name="Apple"), widget_ctx())

    def test_no_intraday_data(self, widget_ctx):
        """No quote and no bars fails the task."""
        with pytest.raises(TaskFailure, match="No intraday data available for AAPL"):
            run(day_trader, EntityDescriptor(ticker="AAPL"), widget_ctx())


class TestMASpecialist:
    def test_news_reaches_the_prompt(self, widget_ctx):
        """Deal news is passed to the model and the reply is mapped."""
        handler = fmp_quotes(
            {"MSFT": 400.0},
            routes={
                "/api/v3/stock_news": [
                    {
                        "title": "Microsoft closes Activision deal",
                        "site": "Reuters",
                        "url": "https://example.com/deal",
                    }
                ]
            },
        )
        llm = FakeGenerator(
            json_reply(
                {
                    "summary": "Acquisitive.",
                    "dealEconomics": {"premium": "45%"},
                    "recentDeals": [{"target": "Activision"}, "Nuance"],
                    "risks": ["Antitrust review"],
                }
            )
        )

        data = run(
            ma_specialist,
            EntityDescriptor(company_name="Microsoft", ticker="MSFT"),
            widget_ctx(handler, llm),
        )

        assert data.summary == "Acquisitive."
        assert data.deal_economics == {"premium": "45%"}
        assert data.strategic_rationale is None
        assert data.recent_deals == [{"target": "Activision"}]
        assert data.risks == ["Antitrust review"]
        assert "Microsoft closes Activision deal" in llm.calls[0][1]

    def test_non_json_reply_uses_fallback_shape(self, widget_ctx):
        """A reply that is not JSON still produces a widget."""
        ctx = widget_ctx(fmp_quotes({"MSFT": 400.0}), FakeGenerator("no deals today"))

        data = run(ma_specialist, EntityDescriptor(ticker="MSFT"), ctx)

        assert data.summary == "Analysis format error"
        assert data.recent_deals == []

    def test_no_company_data(self, widget_ctx):
        """No quote and no profile fails the task."""
        with pytest.raises(TaskFailure, match="Could not fetch company data for MSFT"):
            run(ma_specialist, EntityDescriptor(ticker="MSFT"), widget_ctx())


class TestMarketSentiment:
    def test_reply_is_normalised(self, widget_ctx):
        """Enum values are lower-cased, confidence is clamped, and bad indicators are dropped."""
        queries = []

        def handler(request):
            queries.append(request.url.params["query"])
            return httpx.Response(200, json=gdelt_articles("Apple rallies", "Apple hits record"))

        llm = FakeGenerator(
            json_reply(
                {
                    "overallSentiment": "BULLISH",
                    "confidence": 140,
                    "indicators": [{"metric": "News tone", "value": 0.8}, {"value": "orphan"}],
                    "summary": "Upbeat coverage.",
                    "socialMediaBuzz": {"volume": "HIGH", "sentiment": "ecstatic"},
                }
            )
        )

        data = run(market_sentiment, EntityDescriptor(company_name="Apple"), widget_ctx(handler, llm))

        assert queries == ["Apple"]
        assert data.overall_sentiment == "bullish"
        assert data.confidence == 100.0
        assert [(i.metric, i.value) for i in data.indicators] == [("News tone", "0.8")]
        assert (data.social_media_buzz.volume, data.social_media_buzz.sentiment) == ("high", "mixed")
        assert "Apple hits record" in llm.calls[0][1]

    def test_non_json_reply_uses_neutral_fallback(self, widget_ctx):
        """A reply that is not JSON reads as neutral with zero confidence."""
        ctx = widget_ctx(
            lambda request: httpx.Response(200, json=gdelt_articles("Markets drift")),
            FakeGenerator("I think it's fine"),
        )

        data = run(market_sentiment, EntityDescriptor(), ctx)

        assert data.overall_sentiment == "neutral"
        assert data.confidence == 0.0
        assert data.summary == "Analysis format error"
        assert data.social_media_buzz.volume == "low"

    def test_no_coverage_is_a_task_failure(self, widget_ctx):
        """A failed news lookup fails the task."""
        with pytest.raises(TaskFailure):
            run(market_sentiment, EntityDescriptor(ticker="AAPL"), widget_ctx())


class TestInvestmentThesis:
    def test_thesis_fields_are_defaulted_and_clamped(self, widget_ctx):
        """Missing titles, unknown verdicts and string confidence are normalised."""
        quotes = fmp_quotes({"AAPL": 190.0})

        def handler(request):
            if request.url.host == "api.gdeltproject.org":
                return httpx.Response(200, json=gdelt_articles("Apple unveils new chips"))
            return quotes(request)

        llm = FakeGenerator(
            json_reply(
                {
                    "oneLiner": "Quality compounder.",
                    "bullCase": {"points": ["Services growth"]},
                    "bearCase": {"title": "China risk", "points": ["Share loss"]},
                    "keyCatalysts": [{"event": "WWDC", "timing": "June"}, {"timing": "later"}],
                    "valuation": {"fair": "220", "verdict": "cheap"},
                    "confidence": "85",
                }
            )
        )

        data = run(
            investment_thesis,
            EntityDescriptor(company_name="Apple", ticker="AAPL"),
            widget_ctx(handler, llm),
        )

        assert data.one_liner == "Quality compounder."
        assert (data.bull_case.title, data.bull_case.points) == ("Bull Case", ["Services growth"])
        assert data.bear_case.title == "China risk"
        assert [(c.event, c.timing) for c in data.key_catalysts] == [("WWDC", "June")]
        assert (data.valuation.current, data.valuation.fair) == (190.0, 220.0)
        assert data.valuation.verdict == "Fairly Valued"
        assert data.confidence == 85.0
        assert [s.name for s in data.sources] == ["Financial Modeling Prep", "GDELT DOC 2.0"]
        assert "Apple unveils new chips" in llm.calls[0][1]

    def test_non_json_reply_uses_fallback_shape(self, widget_ctx):
        """A reply that is not JSON keeps default confidence and skips the news source."""
        ctx = widget_ctx(fmp_quotes({"AAPL": 190.0}), FakeGenerator("not json"))

        data = run(investment_thesis, EntityDescriptor(ticker="AAPL"), ctx)

        assert data.one_liner == "Analysis format error"
        assert data.confidence == 50.0
        assert data.valuation.current == 190.0
        assert [s.name for s in data.sources] == ["Financial Modeling Prep"]

    def test_no_company_data(self, widget_ctx):
        """No quote and no profile fails the task."""
        with pytest.raises(TaskFailure, match="Could not fetch company data for AAPL"):
            run(investment_thesis, EntityDescriptor(ticker="AAPL"), widget_ctx())


class TestRiskFlags:
    def test_matches_from_screening(self, widget_ctx):
        """Search results reach the prompt and nameless matches are dropped."""
        queries = []

        def handler(request):
            queries.append(request.url.params["q"])
            return httpx.Response(
                200,
                json={
                    "results": [
                        {
                            "id": "NK-123",
                            "caption": "Acme Trading LLC",
                            "datasets": ["us_ofac_sdn"],
                            "schema": "Company",
                            "score": 0.91,
                        }
                    ]
                },
            )

        llm = FakeGenerator(
            json_reply(
                {
                    "summary": "One possible match on the OFAC list.",
                    "matches": [
                        {
                            "name": "Acme Trading LLC",
                            "datasets": ["us_ofac_sdn"],
                            "url": "https://www.opensanctions.org/entities/NK-123/",
                        },
                        {"datasets": ["eu_fsf"]},
                    ],
                }
            )
        )

        data = run(risk_flags, EntityDescriptor(company_name="Acme Trading"), widget_ctx(handler, llm))

        assert queries == ["Acme Trading"]
        assert data.summary == "One possible match on the OFAC list."
        assert [(m.name, m.datasets) for m in data.matches] == [("Acme Trading LLC", ["us_ofac_sdn"])]
        assert "https://www.opensanctions.org/entities/NK-123/" in llm.calls[0][1]

    def test_no_hits_with_unreadable_reply(self, widget_ctx):
        """An empty search with a reply that is not JSON reports no hits."""
        ctx = widget_ctx(
            lambda request: httpx.Response(200, json={"results": []}), FakeGenerator("nothing")
        )

        data = run(risk_flags, EntityDescriptor(company_name="Acme Trading"), ctx)

        assert data.summary == risk_flags.NO_HITS
        assert data.matches == []

    def test_requires_company_name(self, widget_ctx):
        """Screening needs a company name."""
        with pytest.raises(TaskFailure, match="needs a company name"):
            run(risk_flags, EntityDescriptor(ticker="ACME"), widget_ctx())

    def test_search_failure(self, widget_ctx):
        """A failed search fails the task."""
        with pytest.raises(TaskFailure):
            run(risk_flags, EntityDescriptor(company_name="Acme Trading"), widget_ctx())
