import os
from datetime import date
from typing import Dict, List, Optional, Tuple, Union

from rental_radar.data import Availability, Listing
from rental_radar.errors import FetchError

FIXTURES_DIR = os.path.join(os.path.dirname(__file__), "fixtures")


def load_fixture(name: str) -> str:
    path = os.path.join(FIXTURES_DIR, name)
    with open(path, "r", encoding="utf-8") as f:
        return f.read()


def make_listing(url: str, availability: Availability = None, **kwargs) -> Listing:
    return Listing(url=url, scraped_on=date(2026, 10, 1),
                   availability=availability or Availability.unspecified(), **kwargs)


class FakeFetcher():
    """ serves search pages by location identifier and listing pages by url, a missing page fails the fetch """

    def __init__(self, searches: Dict[str, Union[str, List[str]]] = None, pages: Dict[str, str] = None) -> None:
        self.searches = searches or {}
        self.pages = pages or {}
        self.requests: List[Tuple[str, Optional[Dict]]] = []

    def fetch(self, url: str, params: Optional[Dict] = None) -> str:
        self.requests.append((url, params))
        if params is not None:
            result = self.searches.get(params["locationIdentifier"])
            if isinstance(result, list):
                page_no = params.get("index", 0) // 24
                result = result[page_no] if page_no < len(result) else None
        else:
            result = self.pages.get(url)
        if result is None:
            raise FetchError(url, "status 404")
        return result


def search_page(name: str, urls: List[str]) -> str:
    """ a minimal search result page linking to the given urls """
    cards = "\n".join(
        f'<div class="propertyCard"><a class="propertyCard-link" href="{u}#/">listing</a></div>' for u in urls)
    return f'<html><body><input id="searchLocation" value="{name}">{cards}</body></html>'


def listing_page(title: str, available: str = "") -> str:
    """ a minimal listing page with the given title and availability """
    letting = ""
    if available:
        letting = f'<div id="lettingInformation"><table><tr><td>Date available:</td><td>{available}</td></tr></table></div>'
    return f'<html><body><h1>{title}</h1><p class="property-header-price"><strong>£1,500 pcm</strong></p>{letting}</body></html>'
