"""Tests for IDX market data parsing, formatting and fetching."""

from datetime import date

import httpx
import pytest

from wagate.market import (
    DIVIDEND_URLS,
    RUPS_URL,
    SUSPENSION_URL,
    UMA_URL,
    Dividend,
    MarketDataClient,
    MarketSnapshot,
    format_snapshot,
    parse_dividends,
    parse_market_date,
    parse_rups,
    parse_suspensions,
    parse_uma,
)

TODAY = date(2025, 9, 11)


def _url(raw: str) -> str:
    return str(httpx.URL(raw))


def _table(*rows, header=None) -> str:
    html = "<html><body><table>"
    if header:
        html += "<tr>" + "".join(f"<th>{h}</th>" for h in header) + "</tr>"
    for row in rows:
        html += "<tr>" + "".join(f"<td>{c}</td>" for c in row) + "</tr>"
    return html + "</table></body></html>"


UMA_HTML = _table(
    ("11 Sep 2025", "bbca"),
    ("10 Sep 2025", "TLKM"),
    ("11 Sep 2025", "Not a code"),
    ("11 Sep 2025", "BBCA"),
    header=("Date", "Code"),
)

SUSPENSION_HTML = _table(
    ("11/09/2025", "GOTO", "Suspensi Saham"),
    ("11/09/2025", "BUKA", "Pembatalan Suspensi"),
    ("11/09/2025", "ABCD", "Unsuspend"),
    ("10/09/2025", "EFGH", "Suspensi Saham"),
    ("11/09/2025", "IJKL", "Pengumuman RUPS"),
)

RUPS_HTML = _table(
    ("1", "ASII", "Astra", "RUPST", "15-09-2025", "Jakarta"),
    ("2", "Kode", "x", "x", "x", "x"),
    ("3", "UNVR", "Unilever", "RUPSLB", "16-09-2025", "Jakarta"),
    ("4", "short", "row"),
)

DIVIDEND_HTML = _table(
    ("BBRI", "150", "01-Sep-2025", "02-Sep-2025", "03-Sep-2025", "20-Sep-2025"),
    ("Deviden Saham", "x", "x", "x", "x", "x"),
    ("TLKM", "95.5", "N/A", "05-Sep-2025", "06-Sep-2025", "25-Sep-2025"),
    header=("Kode", "Dividen", "Cum", "Ex", "Recording", "Payment"),
)


class TestParseMarketDate:
    @pytest.mark.parametrize("text", [
        "2025-09-11",
        "11/09/2025",
        "11-09-2025",
        "11 September 2025",
        "11 Sep 2025",
        "September 11, 2025",
        "11-Sep-2025",
        "Senin, 11/09/2025 08:00",
    ])
    def test_formats(self, text):
        assert parse_market_date(text) == TODAY

    @pytest.mark.parametrize("text, expected", [
        ("5 Mei 2025", date(2025, 5, 5)),
        ("17 Agustus 2025", date(2025, 8, 17)),
        ("1 Oktober 2025", date(2025, 10, 1)),
        ("25 Desember 2025", date(2025, 12, 25)),
        ("3 Okt 2025", date(2025, 10, 3)),
    ])
    def test_indonesian_months(self, text, expected):
        assert parse_market_date(text) == expected

    @pytest.mark.parametrize("text", ["", "Date", "tomorrow", "31/02/2025"])
    def test_unparseable(self, text):
        assert parse_market_date(text) is None


class TestParsers:
    def test_uma_today_only(self):
        assert parse_uma(UMA_HTML, TODAY) == ["BBCA"]

    def test_suspensions(self):
        assert parse_suspensions(SUSPENSION_HTML, TODAY) == ["GOTO"]

    def test_rups(self):
        assert parse_rups(RUPS_HTML) == ["ASII", "UNVR"]

    def test_dividends(self):
        assert parse_dividends(DIVIDEND_HTML) == [
            Dividend("BBRI", "150", "01-Sep-2025", "02-Sep-2025"),
            Dividend("TLKM", "95.5", "N/A", "05-Sep-2025"),
        ]

    def test_no_table(self):
        assert parse_rups("<html><body>maintenance</body></html>") == []


class TestFormat:
    def test_empty_sections(self):
        text = format_snapshot(MarketSnapshot(date="11-Sep-2025"))
        assert text.startswith("📊 *IDX Market Data for 11-Sep-2025*\n\n")
        for title in ("🏛️ *RUPS*", "🔥 *UMA*", "✅ *Unsuspensi*", "⏸️ *Suspensi*", "💰 *DIVIDEND*"):
            assert f"{title}\n-\n" in text

    def test_full_snapshot(self):
        snapshot = MarketSnapshot(
            date="11-Sep-2025",
            rups=["ASII", "UNVR"],
            uma=["BBCA"],
            suspensions=["GOTO"],
            dividends=[
                Dividend("BBRI", "150", "01-Sep-2025", "02-Sep-2025"),
                Dividend("TLKM", "95.5", "N/A", ""),
            ],
        )
        text = format_snapshot(snapshot)
        assert "🏛️ *RUPS*\nASII\nUNVR\n\n🔥 *UMA*\nBBCA\n" in text
        assert "✅ *Unsuspensi*\n-\n" in text
        assert "⏸️ *Suspensi*\nGOTO\n" in text
        assert "BBRI (Div. Rp 150)\nCum Date: 01-Sep-2025\nEx Date: 02-Sep-2025\n\nTLKM (Div. Rp 95.5)\n" in text
        assert "Cum Date: N/A" not in text
        assert text.endswith("TLKM (Div. Rp 95.5)\n")


class TestClient:
    @pytest.mark.asyncio
    async def test_fetch_snapshot(self):
        pages = {
            _url(UMA_URL): UMA_HTML,
            _url(SUSPENSION_URL): SUSPENSION_HTML,
            _url(RUPS_URL): RUPS_HTML,
            _url(DIVIDEND_URLS[0]): DIVIDEND_HTML,
        }
        seen_agents = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen_agents.append(request.headers.get("user-agent", ""))
            html = pages.get(str(request.url))
            if html is None:
                return httpx.Response(404)
            return httpx.Response(200, text=html)

        client = MarketDataClient(transport=httpx.MockTransport(handler))
        snapshot = await client.fetch_snapshot(today=TODAY)

        assert snapshot.date == "11-Sep-2025"
        assert snapshot.uma == ["BBCA"]
        assert snapshot.suspensions == ["GOTO"]
        assert snapshot.rups == ["ASII", "UNVR"]
        assert [d.code for d in snapshot.dividends] == ["BBRI", "TLKM"]
        assert all("Mozilla" in ua for ua in seen_agents)

    @pytest.mark.asyncio
    async def test_failing_sections_are_empty(self):
        def handler(request: httpx.Request) -> httpx.Response:
            if str(request.url) == _url(RUPS_URL):
                return httpx.Response(200, text=RUPS_HTML)
            if str(request.url) == _url(DIVIDEND_URLS[-1]):
                return httpx.Response(200, text=DIVIDEND_HTML)
            if str(request.url) == _url(UMA_URL):
                raise httpx.ConnectTimeout("slow", request=request)
            return httpx.Response(503)

        snapshot = await MarketDataClient(transport=httpx.MockTransport(handler)).fetch_snapshot(today=TODAY)

        assert snapshot.uma == []
        assert snapshot.suspensions == []
        assert snapshot.rups == ["ASII", "UNVR"]
        assert [d.code for d in snapshot.dividends] == ["BBRI", "TLKM"]
