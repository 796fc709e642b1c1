import logging
from datetime import date
from typing import Dict, Iterable, List, Optional, Tuple

import requests
from fake_useragent import UserAgent

from rental_radar.data import Listing, SearchLocation
from rental_radar.errors import FetchError, ParseError
from rental_radar.util import sleep_random_range


class DocumentFetcher():
    """ retrieves the body of remote pages over http, one request at a time """

    def __init__(self, timeout: float = 30, delay: Tuple[float, float] = (0, 0), session: Optional[requests.Session] = None, user_agent: Optional[str] = None) -> None:
        """
            timeout -- seconds to wait for a response before failing the fetch
            delay -- (min seconds, max seconds) to wait before each request so the site is not hammered
            session -- the session to send requests through, a new one is made if not given
            user_agent -- the User-Agent header to send, a random browser one is chosen if not given
        """
        self.timeout = timeout
        self.delay = delay
        self.session = session or requests.Session()
        self.user_agent = user_agent or UserAgent().random
        logging.info(f"Setting User-Agent to: {self.user_agent}")

    def fetch(self, url: str, params: Optional[Dict] = None) -> str:
        """ returns the body of the page at the url

            :raises:
                FetchError: if the request fails, times out or the response is not a success
        """
        sleep_random_range(*self.delay)
        headers = {
            'User-Agent': self.user_agent,
            'Accept-Language': 'en-GB,en;q=0.9',
        }
        try:
            response = self.session.get(
                url, params=params, headers=headers, timeout=self.timeout)
        except requests.exceptions.RequestException as E:
            raise FetchError(url, str(E)) from E

        if not 200 <= response.status_code < 300:
            raise FetchError(url, f"status {response.status_code}")
        logging.debug(f"Fetched {url} ({len(response.text)} characters)")
        return response.text


def dedupe_listings(listings: Iterable[Listing]) -> List[Listing]:
    """ drops listings whose url was already seen, keeping the first and the order of the rest """
    seen = set()
    deduped: List[Listing] = []
    for listing in listings:
        if listing.url in seen:
            continue
        seen.add(listing.url)
        deduped.append(listing)
    return deduped


class ListingProvider():
    """ searches every location in turn, then fetches and parses each listing found.

        failures are isolated: a search that cannot be fetched skips its location, a listing that
        cannot be fetched or parsed is dropped, the rest of the run carries on.
    """

    page_size = 24
    """ number of results on one search page """

    def __init__(self, fetcher: DocumentFetcher, max_pages: int = 1) -> None:
        self.fetcher = fetcher
        self.max_pages = max_pages
        self.location_counts: Dict[str, int] = {}
        """ number of listings parsed for each location searched during the last retrieval """
        self.skipped_locations: List[str] = []
        """ locations whose search could not be fetched during the last retrieval """

    def search_url(self) -> str:
        raise NotImplementedError("Implement search_url!")

    def parse_search_page(self, page: str) -> Tuple[str, List[str]]:
        """ returns the resolved location name and the urls of the listings on a search page """
        raise NotImplementedError("Implement parse_search_page!")

    def parse_listing(self, url: str, page: str, scraped_on: date) -> Listing:
        raise NotImplementedError("Implement parse_listing!")

    def find_listing_urls(self, location: SearchLocation) -> List[str]:
        """ walks the search pages of a location and collects listing urls

            :raises:
                FetchError: if any of the search pages cannot be fetched
        """
        urls: List[str] = []
        for page_no in range(self.max_pages):
            params = location.search_params()
            if page_no:
                params["index"] = page_no * self.page_size

            page = self.fetcher.fetch(self.search_url(), params=params)
            location_name, page_urls = self.parse_search_page(page)
            if page_no == 0:
                logging.info(
                    f"Location `{location.name}` ({location.identifier}) resolved to: {location_name or 'unknown'}")

            new_urls = [u for u in page_urls if u not in urls]
            logging.info(
                f"{len(new_urls)} listings on page {page_no + 1} for `{location.name}`")
            if not new_urls:
                break
            urls.extend(new_urls)
        return urls

    def retrieve_listing(self, url: str) -> Optional[Listing]:
        """ fetches and parses one listing, returns None if either fails """
        try:
            page = self.fetcher.fetch(url)
            return self.parse_listing(url, page, date.today())
        except FetchError as E:
            logging.warning(f"Dropping listing {url}: {E}")
        except ParseError as E:
            logging.warning(f"Dropping listing {url}, could not parse it: {E}")
        return None

    def retrieve_all_listings(self, locations: Iterable[SearchLocation]) -> List[Listing]:
        """ retrieve all listings of the given locations, deduplicated by url """
        self.location_counts = {}
        self.skipped_locations = []
        listings: List[Listing] = []

        for location in locations:
            try:
                urls = self.find_listing_urls(location)
            except FetchError as E:
                logging.error(
                    f"Skipping location `{location.name}`, search failed: {E}")
                self.skipped_locations.append(location.name)
                self.location_counts[location.name] = 0
                continue

            found = [l for l in (self.retrieve_listing(u) for u in urls) if l is not None]
            self.location_counts[location.name] = len(found)
            logging.info(
                f"found {len(found)} listings for `{location.name}`: {[x.short_summary() for x in found]}")
            listings.extend(found)

        deduped = dedupe_listings(listings)
        if len(deduped) != len(listings):
            logging.info(
                f"Removed {len(listings) - len(deduped)} listings found in more than one location")
        return deduped
