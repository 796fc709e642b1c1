from datetime import date
import logging
from typing import Dict, List, Tuple, Union
from urllib.parse import urldefrag, urljoin

from bs4 import BeautifulSoup, Tag

from rental_radar.backends import DocumentFetcher, ListingProvider
from rental_radar.data import Listing, parse_availability
from rental_radar.errors import ParseError

PRICE_SELECTORS = ["#propertyHeaderPrice strong", ".property-header-price strong",
                   "#propertyHeaderPrice", ".property-header-price"]
STATION_SELECTORS = ["ul.stations-list li span", "#nearestStations li span"]

LETTING_FIELDS = {
    "date available": "availability",
    "let available date": "availability",
    "available from": "availability",
    "furnishing": "furnishing",
    "furnish type": "furnishing",
    "deposit": "deposit",
}
""" labels of the letting information block mapped to the listing field they fill """


def _text(element: Union[Tag, None]) -> str:
    if element is None:
        return ""
    return " ".join(element.get_text(" ").split())


def _first_text(page: BeautifulSoup, selectors: List[str]) -> str:
    for selector in selectors:
        text = _text(page.select_one(selector))
        if text:
            return text
    return ""


def parse_search_page(page: str, base_url: str) -> Tuple[str, List[str]]:
    """ returns the location name shown on a search page and the absolute urls of the listings on it, in page order """
    soup = BeautifulSoup(page, 'html.parser')

    location_input = soup.find("input", id="searchLocation")
    if location_input is not None and location_input.get("value"):
        location_name = location_input.get("value").strip()
    else:
        location_name = _text(soup.find(class_="searchTitle-heading"))

    links = soup.select("a.propertyCard-link") or soup.select("a[href*='/properties/']")
    urls: List[str] = []
    for link in links:
        href = (link.get("href") or "").strip()
        if not href:
            # featured cards are repeated without a link
            continue
        url, _ = urldefrag(urljoin(base_url, href))
        if url not in urls:
            urls.append(url)
    return location_name, urls


def parse_letting_information(soup: BeautifulSoup) -> Dict[str, str]:
    """ reads the letting information block into `availability`, `furnishing` and `deposit` texts,
        fields that are missing are left out
    """
    block = soup.find(id="lettingInformation")
    if block is None:
        return {}

    pairs: List[Tuple[Tag, Tag]] = []
    for row in block.find_all("tr"):
        cells = row.find_all(["th", "td"])
        if len(cells) >= 2:
            pairs.append((cells[0], cells[1]))
    for term in block.find_all("dt"):
        definition = term.find_next_sibling("dd")
        if definition is not None:
            pairs.append((term, definition))

    values: Dict[str, str] = {}
    for label, value in pairs:
        key = LETTING_FIELDS.get(_text(label).lower().rstrip(":").strip())
        if key and key not in values:
            values[key] = _text(value)
    return values


def parse_listing(url: str, page: str, scraped_on: date) -> Listing:
    """ parses a listing page, fields that are not on the page get their defaults

        :raises:
            ParseError: if the page cannot be read at all
    """
    try:
        soup = BeautifulSoup(page, 'html.parser')

        address = _text(soup.find("address"))
        if not address:
            street = soup.find("meta", attrs={"itemprop": "streetAddress"})
            address = (street.get("content") or "").strip() if street else ""

        stations: List[str] = []
        for selector in STATION_SELECTORS:
            stations = [_text(x) for x in soup.select(selector) if _text(x)]
            if stations:
                break

        letting = parse_letting_information(soup)

        return Listing(
            url=url,
            scraped_on=scraped_on,
            title=_text(soup.find("h1")),
            price=_first_text(soup, PRICE_SELECTORS),
            address=address,
            nearest_stations=tuple(stations),
            availability=parse_availability(letting.get("availability")),
            furnishing=letting.get("furnishing", ""),
            deposit=letting.get("deposit", ""),
        )
    except (AttributeError, TypeError, ValueError) as E:
        raise ParseError(f"{url}: {E}") from E


class Rightmove(ListingProvider):
    """ searches the to-rent section of rightmove, one location identifier at a time """

    def __init__(self, fetcher: DocumentFetcher, base_url: str = "https://www.rightmove.co.uk", max_pages: int = 1) -> None:
        super().__init__(fetcher, max_pages=max_pages)
        self.base_url = base_url.rstrip("/")

    def search_url(self) -> str:
        return f"{self.base_url}/property-to-rent/find.html"

    def parse_search_page(self, page: str) -> Tuple[str, List[str]]:
        return parse_search_page(page, self.base_url)

    def parse_listing(self, url: str, page: str, scraped_on: date) -> Listing:
        listing = parse_listing(url, page, scraped_on)
        logging.debug(f"Parsed: {listing.short_summary()}")
        return listing
