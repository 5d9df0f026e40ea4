"""Unit tests for listing and detail-page parsing."""

from grant_pipeline.application.services.listing_parser import (
    DEFAULT_CATEGORY,
    DEFAULT_ORGANIZATION,
    attachment_file_name,
    attachment_file_type,
    extract_attachment_urls,
    parse_listing,
)
from grant_pipeline.domain.entities import CrawlSourceType

SOURCE = "https://alpha.example/list"

TABLE_PAGE = """
<table class="board-list">
  <tbody>
    <tr><td>번호</td><td>제목</td><td>기관</td><td>구분</td></tr>
    <tr>
      <td>2</td>
      <td><a href="/board/view?id=101">Smart Factory Grant 2026</a></td>
      <td>중소벤처기업부</td>
      <td>창업지원</td>
    </tr>
    <tr>
      <td>1</td>
      <td><a href="javascript:void(0)">Export Voucher Round</a></td>
      <td>KOTRA</td>
      <td>misc</td>
    </tr>
    <tr><td>3</td><td>12</td></tr>
  </tbody>
</table>
"""


def test_table_rows_become_listings():
    projects = parse_listing(TABLE_PAGE, SOURCE, CrawlSourceType.TABLE)

    assert [p.name for p in projects] == ["Smart Factory Grant 2026", "Export Voucher Round"]
    first, second = projects
    assert first.detail_url == "https://alpha.example/board/view?id=101"
    assert first.organization == "중소벤처기업부"
    assert first.category == "창업지원"
    assert first.summary == first.name
    assert first.source_url == SOURCE
    assert second.detail_url is None
    assert second.organization == DEFAULT_ORGANIZATION
    assert second.category == DEFAULT_CATEGORY


def test_page_without_rows_yields_nothing():
    assert parse_listing("<html><body><p>점검 중</p></body></html>", SOURCE, CrawlSourceType.TABLE) == []


def test_list_source_reads_list_items():
    html = """
    <ul class="board-list">
      <li><a href="/v/1">Regional Export Voucher</a><span>산업통상자원부</span><span>수출지원</span></li>
      <li><span>no link here</span></li>
    </ul>
    """
    projects = parse_listing(html, SOURCE, CrawlSourceType.LIST)

    assert len(projects) == 1
    assert projects[0].name == "Regional Export Voucher"
    assert projects[0].detail_url == "https://alpha.example/v/1"
    assert projects[0].organization == "산업통상자원부"
    assert projects[0].category == "수출지원"


def test_list_source_falls_back_to_table_layout():
    projects = parse_listing(TABLE_PAGE, SOURCE, CrawlSourceType.LIST)
    assert projects[0].name == "Smart Factory Grant 2026"


def test_api_items_are_mapped():
    payload = {
        "items": [
            {"id": 7, "title": "Export Voucher", "agency": "KOTRA", "url": "https://x.example/7"},
            "garbage",
            {"name": "R&D Support", "description": "Funding for labs", "applicationProcess": "Online"},
        ]
    }
    projects = parse_listing(payload, SOURCE, CrawlSourceType.API)

    assert len(projects) == 2
    voucher, rnd = projects
    assert voucher.external_id == "7"
    assert voucher.organization == "KOTRA"
    assert voucher.detail_url == "https://x.example/7"
    assert voucher.dedupe_key == ("external_id", "7")
    assert rnd.external_id is None
    assert rnd.summary == "Funding for labs"
    assert rnd.application_process == "Online"


def test_api_plain_list_and_unknown_shapes():
    assert len(parse_listing([{"title": "Plain"}], SOURCE, CrawlSourceType.API)) == 1
    assert parse_listing("not json", SOURCE, CrawlSourceType.API) == []


def test_detail_page_attachment_links_are_absolute_and_unique():
    html = """
    <div class="file">
      <a href="/files/plan.hwpx">plan</a>
      <a href="/files/guide.pdf">guide</a>
      <a href="/download?name=form.hwp">form</a>
      <a href="/files/guide.pdf">guide again</a>
      <a href="/board/list">back</a>
    </div>
    """
    urls = extract_attachment_urls(html, "https://alpha.example/board/view?id=101")

    assert len(urls) == 3
    assert set(urls) == {
        "https://alpha.example/files/plan.hwpx",
        "https://alpha.example/files/guide.pdf",
        "https://alpha.example/download?name=form.hwp",
    }


def test_attachment_name_and_type_from_url():
    assert attachment_file_type("https://a.example/f/plan.HWPX") == "hwpx"
    assert attachment_file_type("https://a.example/f/form.hwp") == "hwp"
    assert attachment_file_type("https://a.example/f/x.zip") == "unknown"
    assert attachment_file_name("https://a.example/f/%EA%B3%B5%EA%B3%A0.pdf") == "공고.pdf"
    assert attachment_file_name("https://a.example/") == "https://a.example/"
