"""IDX market data snapshot: scraping + formatting.

Sources (all public HTML pages):
- UMA (unusual market activity) and suspension notices from idx.co.id
- RUPS (shareholder meetings) and dividends from sahamidx.com

Each section is fetched independently; a failing source is logged and
leaves its section empty instead of failing the whole snapshot.
"""

import asyncio
import logging
import re
from dataclasses import asdict, dataclass, field
from datetime import date, datetime
from typing import Optional

import httpx
from bs4 import BeautifulSoup

logger = logging.getLogger("wagate.market")

UMA_URL = "https://www.idx.co.id/en/news/unusual-market-activity-uma"
SUSPENSION_URL = "https://www.idx.co.id/id/berita/suspensi"
RUPS_URL = "https://www.new.sahamidx.com/?/rups"
DIVIDEND_URLS = (
    "https://www.new.sahamidx.com/?/deviden",
    "https://www.new.sahamidx.com/deviden",
    "https://new.sahamidx.com/?/deviden",
    "https://new.sahamidx.com/deviden",
)

_HEADERS = {
    "User-Agent": (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
    ),
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.9,id;q=0.8",
}

_STOCK_CODE_RE = re.compile(r"^[A-Z]{2,6}$")

# Indonesian month names to English; whole words only
_MONTHS_ID = {
    "januari": "january",
    "februari": "february",
    "maret": "march",
    "mei": "may",
    "juni": "june",
    "juli": "july",
    "agustus": "august",
    "oktober": "october",
    "desember": "december",
    "agu": "aug",
    "okt": "oct",
    "des": "dec",
}

_DATE_FORMATS = (
    "%Y-%m-%d",
    "%d/%m/%Y",
    "%d-%m-%Y",
    "%d %B %Y",
    "%d %b %Y",
    "%B %d, %Y",
    "%b %d, %Y",
    "%d-%b-%Y",
)


@dataclass
class Dividend:
    code: str
    amount: str
    cum_date: str = ""
    ex_date: str = ""


@dataclass
class MarketSnapshot:
    date: str  # DD-Mon-YYYY
    rups: list[str] = field(default_factory=list)
    uma: list[str] = field(default_factory=list)
    suspensions: list[str] = field(default_factory=list)
    dividends: list[Dividend] = field(default_factory=list)

    def to_dict(self) -> dict:
        return asdict(self)


# ── Pure helpers ───────────────────────────────────────────────

def parse_market_date(text: str) -> Optional[date]:
    """Parse the date formats seen on IDX pages, Indonesian or English."""
    if not text:
        return None
    cleaned = " ".join(text.strip().lower().split())
    for indo, eng in _MONTHS_ID.items():
        cleaned = re.sub(rf"\b{indo}\b", eng, cleaned)

    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(cleaned, fmt).date()
        except ValueError:
            continue

    # Embedded numeric date, e.g. "Senin, 11/09/2025 08:00"
    m = re.search(r"(\d{4})[/-](\d{1,2})[/-](\d{1,2})", cleaned)
    if m:
        y, mo, d = (int(g) for g in m.groups())
    else:
        m = re.search(r"(\d{1,2})[/-](\d{1,2})[/-](\d{4})", cleaned)
        if not m:
            return None
        d, mo, y = (int(g) for g in m.groups())
    try:
        return date(y, mo, d)
    except ValueError:
        return None


def is_stock_code(text: str) -> bool:
    return bool(_STOCK_CODE_RE.match(text.strip()))


def _rows(html: str) -> list[list[str]]:
    soup = BeautifulSoup(html, "html.parser")
    rows = []
    for tr in soup.find_all("tr"):
        cells = [td.get_text(" ", strip=True) for td in tr.find_all("td")]
        if cells:
            rows.append(cells)
    return rows


def parse_uma(html: str, today: date) -> list[str]:
    """Stock codes flagged today: rows of (date, code, ...)."""
    codes = []
    for cells in _rows(html):
        if len(cells) < 2:
            continue
        code = cells[1].strip().upper()
        if parse_market_date(cells[0]) == today and is_stock_code(code) and code not in codes:
            codes.append(code)
    return codes


def parse_suspensions(html: str, today: date) -> list[str]:
    """Codes suspended today; lifted or cancelled suspensions are skipped."""
    codes = []
    for cells in _rows(html):
        if len(cells) < 2:
            continue
        status = " ".join(cells[2:]).lower() if len(cells) > 2 else " ".join(cells).lower()
        if parse_market_date(cells[0]) != today:
            continue
        if not ("suspensi" in status or "suspend" in status):
            continue
        if "batal" in status or "unsuspend" in status:
            continue
        code = cells[1].strip().upper()
        if is_stock_code(code) and code not in codes:
            codes.append(code)
    return codes


def parse_rups(html: str) -> list[str]:
    """Codes with an upcoming RUPS: tables with >= 6 cells, code in cell 1."""
    codes = []
    for cells in _rows(html):
        if len(cells) < 6:
            continue
        code = cells[1].strip()
        if is_stock_code(code) and code not in codes:
            codes.append(code)
    return codes


def parse_dividends(html: str) -> list[Dividend]:
    """Dividend rows: (code, amount, cum date, ex date, recording, payment)."""
    result = []
    for cells in _rows(html):
        if len(cells) < 6:
            continue
        code, amount, cum_date, ex_date = (c.strip() for c in cells[:4])
        if not code or not amount or code == "Deviden Saham":
            continue
        if not is_stock_code(code):
            continue
        result.append(Dividend(code=code, amount=amount, cum_date=cum_date, ex_date=ex_date))
    return result


def _section(title: str, lines: list[str]) -> str:
    body = "\n".join(lines) if lines else "-"
    return f"{title}\n{body}\n"


def format_snapshot(snapshot: MarketSnapshot) -> str:
    """Render a snapshot as a WhatsApp message."""
    parts = [f"📊 *IDX Market Data for {snapshot.date}*\n"]
    parts.append(_section("🏛️ *RUPS*", snapshot.rups))
    parts.append(_section("🔥 *UMA*", snapshot.uma))
    # IDX does not publish lifted suspensions in a scrapeable table
    parts.append(_section("✅ *Unsuspensi*", []))
    parts.append(_section("⏸️ *Suspensi*", snapshot.suspensions))

    if snapshot.dividends:
        lines = []
        for div in snapshot.dividends:
            lines.append(f"{div.code} (Div. Rp {div.amount})")
            if div.cum_date and div.cum_date != "N/A":
                lines.append(f"Cum Date: {div.cum_date}")
            if div.ex_date and div.ex_date != "N/A":
                lines.append(f"Ex Date: {div.ex_date}")
            lines.append("")
        parts.append("💰 *DIVIDEND*\n" + "\n".join(lines))
    else:
        parts.append(_section("💰 *DIVIDEND*", []))

    return "\n".join(parts).rstrip() + "\n"


# ── Client ─────────────────────────────────────────────────────

class MarketDataClient:
    """Fetch today's IDX snapshot.

    Args:
        timeout: Per-request timeout in seconds. A timeout is an ordinary
            section failure.
        transport: Optional httpx transport (tests use httpx.MockTransport).
    """

    def __init__(self, timeout: float = 30.0, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.timeout = timeout
        self._transport = transport

    async def fetch_snapshot(self, today: Optional[date] = None) -> MarketSnapshot:
        today = today or date.today()
        snapshot = MarketSnapshot(date=today.strftime("%d-%b-%Y"))

        async with httpx.AsyncClient(
            timeout=self.timeout,
            headers=_HEADERS,
            follow_redirects=True,
            transport=self._transport,
        ) as client:
            uma, suspensions, rups, dividends = await asyncio.gather(
                self._section(client, "UMA", UMA_URL, lambda h: parse_uma(h, today)),
                self._section(client, "Suspensi", SUSPENSION_URL, lambda h: parse_suspensions(h, today)),
                self._section(client, "RUPS", RUPS_URL, parse_rups),
                self._dividends(client),
            )

        snapshot.uma = uma
        snapshot.suspensions = suspensions
        snapshot.rups = rups
        snapshot.dividends = dividends
        return snapshot

    async def _get(self, client: httpx.AsyncClient, url: str) -> str:
        resp = await client.get(url)
        resp.raise_for_status()
        return resp.text

    async def _section(self, client: httpx.AsyncClient, name: str, url: str, parse) -> list:
        try:
            html = await self._get(client, url)
            items = parse(html)
            logger.info(f"{name}: {len(items)} item(s)")
            return items
        except httpx.HTTPError as e:
            logger.error(f"Error fetching {name} data: {e}")
            return []

    async def _dividends(self, client: httpx.AsyncClient) -> list[Dividend]:
        for url in DIVIDEND_URLS:
            try:
                html = await self._get(client, url)
            except httpx.HTTPError as e:
                logger.warning(f"Dividend URL {url} failed: {e}")
                continue
            items = parse_dividends(html)
            if items:
                logger.info(f"Dividend: {len(items)} record(s) from {url}")
                return items
        logger.info("No dividend data found from any URL")
        return []
