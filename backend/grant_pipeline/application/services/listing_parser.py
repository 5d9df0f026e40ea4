"""Listing parser — turns fetched source pages into crawled project listings.

Table and list pages are parsed with BeautifulSoup; API sources return JSON.
A row that cannot be parsed is logged and skipped, never fatal to the page.
"""

import logging
import re
from typing import Any
from urllib.parse import unquote, urljoin, urlparse

from bs4 import BeautifulSoup, Tag

from grant_pipeline.domain.entities.crawl_source import CrawlSourceType
from grant_pipeline.domain.entities.support_project import CrawledProject

logger = logging.getLogger(__name__)

DEFAULT_ORGANIZATION = "미분류"
DEFAULT_CATEGORY = "지원사업"
DEFAULT_TARGET = "중소기업"
DEFAULT_REGION = "전국"

# Tried in order; the first selector that yields listings wins.
TABLE_ROW_SELECTORS = (
    "table.board-list tbody tr",
    "table.table tbody tr",
    ".board-list tbody tr",
    ".list-table tbody tr",
    "tbody tr",
    "tr",
)

LIST_ITEM_SELECTORS = (
    "ul.board-list li",
    ".board-list li",
    ".list-wrap li",
    "ul.list li",
    "div[class*='item']",
    "article",
)

HEADER_MARKERS = ("번호", "제목", "구분")
CATEGORY_MARKERS = ("지원", "사업", "공모")
ORGANIZATION_MARKERS = ("부", "청", "원", "공단")

ATTACHMENT_EXTENSIONS = (".hwp", ".hwpx", ".pdf")
ATTACHMENT_SELECTORS = (
    'a[href*=".hwp"]',
    'a[href*=".hwpx"]',
    'a[href*=".pdf"]',
    'a[href*="download"]',
    'a[href*="file"]',
    'a[href*="attach"]',
    ".file a",
    ".attachment a",
    ".download a",
)

_NUMERIC = re.compile(r"^\d+$")


def parse_listing(
    content: str | Any, source_url: str, source_type: CrawlSourceType
) -> list[CrawledProject]:
    """Parse a fetched listing page according to its source type."""
    if source_type is CrawlSourceType.API:
        return parse_api_items(content, source_url)
    if source_type is CrawlSourceType.LIST:
        projects = parse_list_html(content, source_url)
        # Many "list" boards are still tables underneath.
        return projects or parse_table_html(content, source_url)
    return parse_table_html(content, source_url)


def parse_table_html(html: str, source_url: str) -> list[CrawledProject]:
    soup = BeautifulSoup(html, "html.parser")

    for selector in TABLE_ROW_SELECTORS:
        rows = soup.select(selector)
        if not rows:
            continue

        projects: list[CrawledProject] = []
        for idx, row in enumerate(rows):
            if idx == 0 and _is_header_row(row):
                continue
            try:
                project = _parse_table_row(row, source_url)
            except Exception:
                logger.warning("Skipping unparsable row %d on %s", idx, source_url, exc_info=True)
                continue
            if project is not None:
                projects.append(project)

        if projects:
            logger.debug("Parsed %d listings with selector %r", len(projects), selector)
            return projects

    logger.info("No table listings found on %s", source_url)
    return []


def parse_list_html(html: str, source_url: str) -> list[CrawledProject]:
    soup = BeautifulSoup(html, "html.parser")

    for selector in LIST_ITEM_SELECTORS:
        items = soup.select(selector)
        if not items:
            continue

        projects: list[CrawledProject] = []
        for idx, item in enumerate(items):
            try:
                project = _parse_list_item(item, source_url)
            except Exception:
                logger.warning("Skipping unparsable item %d on %s", idx, source_url, exc_info=True)
                continue
            if project is not None:
                projects.append(project)

        if projects:
            logger.debug("Parsed %d listings with selector %r", len(projects), selector)
            return projects

    return []


def parse_api_items(data: Any, source_url: str) -> list[CrawledProject]:
    """Parse a JSON API response: a list, or an object with ``items`` or ``data``."""
    if isinstance(data, list):
        items = data
    elif isinstance(data, dict):
        items = data.get("items") or data.get("data") or []
    else:
        items = []

    projects: list[CrawledProject] = []
    for idx, item in enumerate(items):
        if not isinstance(item, dict):
            logger.warning("Skipping non-object API item %d from %s", idx, source_url)
            continue
        external_id = item.get("id")
        description = item.get("description")
        projects.append(
            CrawledProject(
                external_id=str(external_id) if external_id is not None else None,
                name=item.get("name") or item.get("title") or "정보 없음",
                organization=item.get("organization") or item.get("agency") or "미상",
                category=item.get("category") or "기타",
                target=item.get("target") or DEFAULT_TARGET,
                region=item.get("region") or DEFAULT_REGION,
                summary=item.get("summary") or description or "",
                description=description,
                eligibility=item.get("eligibility"),
                application_process=item.get("applicationProcess"),
                detail_url=item.get("url"),
                source_url=source_url,
            )
        )
    return projects


def extract_attachment_urls(html: str, page_url: str) -> list[str]:
    """Absolute HWP/HWPX/PDF links found on a detail page, deduplicated in page order."""
    soup = BeautifulSoup(html, "html.parser")
    urls: list[str] = []
    for selector in ATTACHMENT_SELECTORS:
        for link in soup.select(selector):
            href = link.get("href")
            if not href or not any(ext in href.lower() for ext in ATTACHMENT_EXTENSIONS):
                continue
            absolute = urljoin(page_url, href)
            if absolute not in urls:
                urls.append(absolute)
    return urls


def attachment_file_name(url: str) -> str:
    path = urlparse(url).path
    name = unquote(path.rsplit("/", 1)[-1]) if path else ""
    return name or url


def attachment_file_type(url: str) -> str:
    lowered = url.lower()
    # .hwpx first: ".hwp" is a prefix of it
    for ext in (".hwpx", ".hwp", ".pdf"):
        if ext in lowered:
            return ext.lstrip(".")
    return "unknown"


# ── Row helpers ─────────────────────────────────────────────────────


def _is_header_row(row: Tag) -> bool:
    text = row.get_text(" ", strip=True)
    return any(marker in text for marker in HEADER_MARKERS)


def _parse_table_row(row: Tag, source_url: str) -> CrawledProject | None:
    cells = row.find_all("td")
    if len(cells) < 2:
        return None

    name = ""
    detail_url = None
    organization = ""
    category = ""

    for cell in cells:
        text = cell.get_text(" ", strip=True)
        link = cell.find("a")
        if link is not None and not name:
            name = link.get_text(" ", strip=True)
            detail_url = _resolve_href(link.get("href"), source_url)

        if 2 < len(text) < 30:
            if not category and any(m in text for m in CATEGORY_MARKERS):
                category = text
            if not organization and any(m in text for m in ORGANIZATION_MARKERS):
                organization = text

    if not name:
        name = cells[1].get_text(" ", strip=True)
        if len(name) < 3 and len(cells) > 2:
            name = cells[2].get_text(" ", strip=True)

    return _build_listing(name, source_url, detail_url, organization, category)


def _parse_list_item(item: Tag, source_url: str) -> CrawledProject | None:
    link = item.find("a")
    if link is None:
        return None
    name = link.get_text(" ", strip=True)
    detail_url = _resolve_href(link.get("href"), source_url)

    organization = ""
    category = ""
    for piece in item.stripped_strings:
        if not 2 < len(piece) < 30 or piece == name:
            continue
        if not category and any(m in piece for m in CATEGORY_MARKERS):
            category = piece
        if not organization and any(m in piece for m in ORGANIZATION_MARKERS):
            organization = piece

    return _build_listing(name, source_url, detail_url, organization, category)


def _build_listing(
    name: str,
    source_url: str,
    detail_url: str | None,
    organization: str,
    category: str,
) -> CrawledProject | None:
    if not name or len(name) < 3 or _NUMERIC.match(name):
        return None
    return CrawledProject(
        name=name,
        organization=organization or DEFAULT_ORGANIZATION,
        category=category or DEFAULT_CATEGORY,
        target=DEFAULT_TARGET,
        region=DEFAULT_REGION,
        summary=name,
        source_url=source_url,
        detail_url=detail_url,
    )


def _resolve_href(href: str | None, base_url: str) -> str | None:
    if not href:
        return None
    href = href.strip()
    if not href or href.startswith("#") or href.lower().startswith("javascript:"):
        return None
    return urljoin(base_url, href)
