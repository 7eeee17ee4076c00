import time
from urllib.parse import urljoin

import requests
from bs4 import BeautifulSoup

from duende import config
from duende.errors import SourceFetchError
from duende.sources.base import EventSource
from duende.utils.dates import parse_locale_date

DEFAULT_SELECTORS = {
    "link": "a.event-link",
    "name": "h1",
    "artist": ".event-artist",
    "description": ".event-description",
    "date": ".event-date",
    "time": ".event-time",
    "venue": ".event-venue",
    "city": ".event-city",
    "country": ".event-country",
}

DETAIL_FIELDS = ["name", "artist", "description", "date", "time", "venue", "city", "country"]


def _select_text(soup, selector):
    if not selector:
        return None
    el = soup.select_one(selector)
    if not el:
        return None
    # <time datetime="..."> and meta-like tags carry the cleanest value in an attribute
    value = el.get("datetime") or el.get("content") or el.get_text(" ", strip=True)
    return " ".join(value.split()) or None


def extract_detail_links(html, base_url, link_selector):
    """Collect absolute detail-page URLs from a listing page, de-duplicated in page order."""
    soup = BeautifulSoup(html, "html.parser")
    links = []
    seen = set()
    for a in soup.select(link_selector):
        href = a.get("href")
        if not href:
            continue
        url = urljoin(base_url, href)
        if url not in seen:
            seen.add(url)
            links.append(url)
    return links


def extract_detail_fields(html, selectors, country=None, verified=False):
    """
    Pull one raw candidate out of a detail page.
    The date is converted from Spanish long form to ISO. Unreadable date text
    is kept as found so the normalizer rejects it as an invalid date; date is
    None only when the page has no date at all.
    """
    soup = BeautifulSoup(html, "html.parser")
    candidate = {field: _select_text(soup, selectors.get(field)) for field in DETAIL_FIELDS}

    raw_date = candidate["date"]
    if raw_date and not _is_iso(raw_date):
        candidate["date"] = parse_locale_date(raw_date) or raw_date

    if not candidate["country"] and country:
        candidate["country"] = country
    candidate["verified"] = verified
    return candidate


def _is_iso(text):
    return len(text) >= 10 and text[4] == "-" and text[7] == "-" and text[:4].isdigit()


class ScrapeSource(EventSource):
    """
    Scrape a listing page, then each linked detail page.
    The query is the listing URL.
    """

    name = "scrape"

    def __init__(self, selectors=None, country=None, detail_delay=None, verified=False,
                 session=None, log=print, sleep=time.sleep):
        self.selectors = {**DEFAULT_SELECTORS, **(selectors or {})}
        self.country = config.SCRAPE_COUNTRY if country is None else country
        self.detail_delay = config.SCRAPE_DETAIL_DELAY if detail_delay is None else detail_delay
        self.verified = verified
        self.session = session or requests.Session()
        self.session.headers.update(config.SCRAPE_HEADERS)
        self.log = log
        self.sleep = sleep

    def get(self, url):
        resp = self.session.get(url, timeout=30)
        resp.raise_for_status()
        return resp.text

    def fetch(self, query):
        try:
            listing = self.get(query)
        except requests.RequestException as e:
            raise SourceFetchError(f"Listing page {query} failed: {e}") from e

        links = extract_detail_links(listing, query, self.selectors["link"])
        if not links:
            return []

        candidates = []
        for i, url in enumerate(links):
            if i > 0:
                self.sleep(self.detail_delay)
            try:
                html = self.get(url)
            except requests.RequestException as e:
                self.log(f"    Detail page {url} failed: {e}", "WARNING")
                continue
            candidates.append(extract_detail_fields(html, self.selectors, self.country, self.verified))

        self.log(f"  {len(candidates)}/{len(links)} detail pages read from {query}")
        return candidates
