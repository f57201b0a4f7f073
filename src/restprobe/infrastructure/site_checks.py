"""Website health checks over plain HTTP: sitemap, URL accessibility, broken links"""

import logging
import xml.etree.ElementTree as ET
from dataclasses import dataclass
from html.parser import HTMLParser
from typing import List, Optional
from urllib.parse import urldefrag, urljoin

import requests

from restprobe.domain.models.response import ApiResponse
from restprobe.infrastructure.http_client import TRANSPORT_ERRORS, api_response_from_requests
from restprobe.infrastructure.retry import RetryingRequestExecutor

logger = logging.getLogger(__name__)

SITEMAP_NAMESPACE = "{http://www.sitemaps.org/schemas/sitemap/0.9}"


class SiteCheckError(Exception):
    """Sitemap or page could not be fetched or parsed."""

    pass


@dataclass(frozen=True)
class UrlCheck:
    """Result of checking one URL"""

    url: str
    status_code: Optional[int]
    ok: bool
    error: Optional[str] = None


class _PageScanner(HTMLParser):
    """Collects a[href] targets and robots meta directives"""

    def __init__(self):
        super().__init__()
        self.hrefs: List[str] = []
        self.robots: List[str] = []

    def handle_starttag(self, tag, attrs):
        attributes = dict(attrs)
        if tag == "a" and attributes.get("href"):
            self.hrefs.append(attributes["href"].strip())
        elif tag == "meta" and (attributes.get("name") or "").lower() == "robots":
            self.robots.append((attributes.get("content") or "").lower())


def parse_sitemap(xml_text: str) -> List[str]:
    """Extract <loc> URLs from a sitemap urlset document

    The sitemap source is trusted: ElementTree does not guard against
    entity-expansion payloads, so only point this at sites you control.
    Documents declaring a DOCTYPE are refused outright.

    Raises:
        SiteCheckError: If the document is not a urlset or declares a DOCTYPE
    """
    if "<urlset" not in xml_text:
        raise SiteCheckError("Sitemap does not contain a <urlset> element")
    # Sitemaps never need a DTD; entity declarations live there
    if "<!DOCTYPE" in xml_text.upper():
        raise SiteCheckError("Sitemap must not declare a DOCTYPE")
    try:
        root = ET.fromstring(xml_text)
    except ET.ParseError as e:
        raise SiteCheckError(f"Invalid sitemap XML: {e}") from e
    locs = root.iter(f"{SITEMAP_NAMESPACE}loc")
    urls = [el.text.strip() for el in locs if el.text and el.text.strip()]
    if not urls:
        # Sitemaps without the standard namespace
        urls = [el.text.strip() for el in root.iter("loc") if el.text and el.text.strip()]
    return urls


def extract_links(html: str, base_url: str, prefix: Optional[str] = None) -> List[str]:
    """Absolute, de-duplicated link targets of a page, in document order"""
    scanner = _PageScanner()
    scanner.feed(html)
    links: List[str] = []
    seen = set()
    for href in scanner.hrefs:
        if href.startswith(("mailto:", "tel:", "javascript:", "#")):
            continue
        url, _ = urldefrag(urljoin(base_url, href))
        if prefix and not url.startswith(prefix):
            continue
        if url not in seen:
            seen.add(url)
            links.append(url)
    return links


def is_indexable(html: str) -> bool:
    """False when a robots meta tag contains noindex"""
    scanner = _PageScanner()
    scanner.feed(html)
    return not any("noindex" in content for content in scanner.robots)


class SiteChecker:
    """Runs site checks; every GET goes through the retry executor"""

    def __init__(
        self,
        executor: Optional[RetryingRequestExecutor] = None,
        session: Optional[requests.Session] = None,
        timeout: float = 30.0,
    ):
        self.executor = executor or RetryingRequestExecutor(retry_on=TRANSPORT_ERRORS)
        self.session = session or requests.Session()
        self.timeout = timeout

    def _get(self, url: str) -> ApiResponse:
        def _send() -> ApiResponse:
            logger.debug(f"Sending GET request to: {url}")
            return api_response_from_requests(self.session.get(url, timeout=self.timeout))

        return self.executor.execute(_send)

    def fetch_sitemap(self, sitemap_url: str) -> List[str]:
        """Fetch sitemap.xml and return its URLs

        Raises:
            SiteCheckError: If the sitemap is missing, empty or malformed
        """
        response = self._get(sitemap_url)
        if response.status_code != 200:
            raise SiteCheckError(f"Sitemap {sitemap_url} returned status {response.status_code}")
        urls = parse_sitemap(response.body)
        if not urls:
            raise SiteCheckError(f"Sitemap {sitemap_url} contains no URLs")
        logger.info(f"Sitemap {sitemap_url} lists {len(urls)} URLs")
        return urls

    def check_url(self, url: str, broken_statuses: Optional[set] = None) -> UrlCheck:
        """Check one URL

        Args:
            url: URL to request
            broken_statuses: Statuses treated as failures (None = any status >= 400)
        """
        try:
            response = self._get(url)
        except Exception as e:
            logger.error(f"Request to {url} failed: {e}")
            return UrlCheck(url=url, status_code=None, ok=False, error=str(e))
        status = response.status_code
        ok = status not in broken_statuses if broken_statuses is not None else status < 400
        if not ok:
            logger.warning(f"Broken URL: {url} (status {status})")
        return UrlCheck(url=url, status_code=status, ok=ok)

    def check_urls(self, urls: List[str], limit: Optional[int] = 10) -> List[UrlCheck]:
        """Check that URLs answer with a status below 400"""
        selected = urls[:limit] if limit is not None else urls
        return [self.check_url(url) for url in selected]

    def find_links(self, page_url: str, prefix: Optional[str] = None) -> List[str]:
        """Links found on a page

        Raises:
            SiteCheckError: If the page cannot be loaded
        """
        response = self._get(page_url)
        if response.status_code >= 400:
            raise SiteCheckError(f"Page {page_url} returned status {response.status_code}")
        return extract_links(response.body, page_url, prefix)

    def check_links(self, page_url: str, prefix: Optional[str] = None) -> List[UrlCheck]:
        """Check that no link on a page leads to a 404"""
        links = self.find_links(page_url, prefix)
        logger.info(f"Checking {len(links)} links on {page_url}")
        return [self.check_url(link, broken_statuses={404}) for link in links]
