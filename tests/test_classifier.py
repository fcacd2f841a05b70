# File: tests/test_classifier.py
import pytest

from site_mapper.config import AnalyzerConfig
from site_mapper.crawler.analyzer import HtmlPageAnalyzer
from site_mapper.crawler.classifier import RedirectToRootRule, classify_response, resolve_redirect
from site_mapper.crawler.models import FetchResponse, LinkStatus
from site_mapper.crawler.normalizer import UrlNormalizer

ROOT = "https://example.com"
RULE = RedirectToRootRule(UrlNormalizer())
ANALYZER = HtmlPageAnalyzer(AnalyzerConfig())


def response(url, code, location=None, html=None):
    return FetchResponse(
        url=url,
        status_code=code,
        location=location,
        content_type="text/html" if html is not None else "",
        text=html,
    )


@pytest.mark.parametrize("location", ["https://example.com/", "/", "https://www.example.com", "https://EXAMPLE.com//"])
def test_redirect_to_root_is_soft_404(location):
    result = classify_response(response(f"{ROOT}/gone", 302, location), ROOT, ANALYZER, RULE)
    assert result.status is LinkStatus.SOFT_404
    assert result.links == []
    assert result.is_leaf
    assert result.redirect_location is not None


def test_root_redirecting_to_itself_is_a_redirect():
    result = classify_response(response(ROOT, 301, "https://www.example.com/"), ROOT, ANALYZER, RULE)
    assert result.status is LinkStatus.REDIRECT
    assert result.links == ["https://www.example.com/"]


def test_redirect_target_becomes_single_link():
    result = classify_response(response(f"{ROOT}/old", 301, "/new-page"), ROOT, ANALYZER, RULE)
    assert result.status is LinkStatus.REDIRECT
    assert not result.is_leaf
    assert result.links == [f"{ROOT}/new-page"]
    assert result.redirect_location == f"{ROOT}/new-page"


def test_soft_404_rule_is_pluggable():
    result = classify_response(response(f"{ROOT}/gone", 302, "/"), ROOT, ANALYZER, None)
    assert result.status is LinkStatus.REDIRECT


@pytest.mark.parametrize("location", [None, "", "   "])
def test_redirect_without_location_is_broken(location):
    assert resolve_redirect(f"{ROOT}/x", location, ROOT, RULE).status is LinkStatus.BROKEN


@pytest.mark.parametrize(
    "code,expected",
    [(404, LinkStatus.BROKEN), (500, LinkStatus.ERROR), (403, LinkStatus.ERROR), (410, LinkStatus.ERROR)],
)
def test_error_codes(code, expected):
    assert classify_response(response(f"{ROOT}/x", code), ROOT, ANALYZER, RULE).status is expected


def test_ok_page_links_come_from_analyzer():
    html = '<html><body><a href="/a">A</a><a href="https://other.org/x">X</a></body></html>'
    result = classify_response(response(ROOT, 200, html=html), ROOT, ANALYZER, RULE)
    assert result.status is LinkStatus.OK
    assert not result.is_leaf
    assert result.links == [f"{ROOT}/a"]


def test_non_html_success_is_ok_leaf():
    resp = FetchResponse(url=f"{ROOT}/file.pdf", status_code=200, content_type="application/pdf")
    result = classify_response(resp, ROOT, ANALYZER, RULE)
    assert result.status is LinkStatus.OK
    assert result.is_leaf and result.links == []


def test_classification_is_deterministic():
    resp = response(f"{ROOT}/gone", 302, "/")
    first = classify_response(resp, ROOT, ANALYZER, RULE)
    second = classify_response(resp, ROOT, ANALYZER, RULE)
    assert first == second
