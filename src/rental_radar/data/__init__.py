"""
Module containing the plain data objects
"""

from dataclasses import dataclass, field
import datetime
from enum import Enum
import logging
import re
from typing import Dict, List, Optional, Tuple, Union

import dateparser

ISO_DATE = re.compile(r"\d{4}-\d{2}-\d{2}")


class AvailabilityKind(Enum):
    UNSPECIFIED = "unspecified"
    """ the listing does not say when it is available """
    IMMEDIATE = "now"
    """ the listing is available right away """
    DATED = "dated"
    """ the listing is available from a calendar date """


@dataclass(frozen=True)
class Availability():
    """ when a property can be moved into, as a tagged value rather than the raw text of the page """

    kind: AvailabilityKind = AvailabilityKind.UNSPECIFIED

    date: Optional[datetime.date] = None
    """ only set when `kind` is DATED """

    def __post_init__(self):
        if (self.kind is AvailabilityKind.DATED) != (self.date is not None):
            raise ValueError(
                f"a date must be given exactly when availability is dated, got {self.kind.name} with {self.date}")

    @classmethod
    def unspecified(cls) -> "Availability":
        return cls(AvailabilityKind.UNSPECIFIED)

    @classmethod
    def immediate(cls) -> "Availability":
        return cls(AvailabilityKind.IMMEDIATE)

    @classmethod
    def on(cls, day: datetime.date) -> "Availability":
        return cls(AvailabilityKind.DATED, day)

    def is_after(self, cutoff: datetime.date) -> bool:
        """ true only for a dated availability strictly later than the cutoff """
        return self.kind is AvailabilityKind.DATED and self.date > cutoff

    def as_cell(self) -> str:
        """ text written to the ledger: empty, `Now` or an ISO date """
        if self.kind is AvailabilityKind.DATED:
            return self.date.isoformat()
        if self.kind is AvailabilityKind.IMMEDIATE:
            return "Now"
        return ""


def parse_availability(text: Optional[str]) -> Availability:
    """ classifies the availability text of a listing page.

        empty or missing text is unspecified, `now` in any case is immediate, ISO dates are read
        year first and anything else as a day/month/year date. Dates missing a part, such as a bare
        weekday, resolve to the next matching day. Text that is not a date degrades to unspecified.
    """
    if text is None:
        return Availability.unspecified()

    text = " ".join(text.split())
    if not text:
        return Availability.unspecified()
    if text.lower() == "now":
        return Availability.immediate()

    if ISO_DATE.fullmatch(text):
        try:
            return Availability.on(datetime.date.fromisoformat(text))
        except ValueError:
            logging.debug(f"Availability `{text}` is not a valid date, treating as unspecified")
            return Availability.unspecified()

    try:
        parsed = dateparser.parse(text, languages=['en'], settings={
                                  'DATE_ORDER': 'DMY', 'PREFER_DATES_FROM': 'future'})
    except (ValueError, OverflowError) as E:
        logging.warning(f"Could not parse availability `{text}`: {E}")
        parsed = None

    if parsed is None:
        logging.debug(f"Availability `{text}` is not a date, treating as unspecified")
        return Availability.unspecified()
    return Availability.on(parsed.date())


@dataclass(frozen=True)
class Listing():
    """ Contains data about a particular property found online """

    url: str
    """ the url of the listing page, unique among all listings """

    scraped_on: datetime.date
    """ the date the listing page was fetched """

    title: str = ""

    price: str = ""
    """ the price as advertised, i.e. `£1,850 pcm` """

    address: str = ""

    nearest_stations: Tuple[str, ...] = ()
    """ names of the closest transit stops, nearest first """

    availability: Availability = field(default_factory=Availability.unspecified)

    furnishing: str = ""

    deposit: str = ""

    def short_summary(self) -> str:
        """ returns short summary for command line usage"""
        return f"{self.title} : {self.price} : {self.address} : {self.url}"


@dataclass(frozen=True)
class SearchFilters():
    """ the filters applied identically to the search of every location """

    radius: float = 0.0
    """ miles around the location to include """

    min_price: Optional[int] = None

    max_price: Optional[int] = None

    min_bedrooms: Optional[int] = None

    max_bedrooms: Optional[int] = None

    dont_show: Tuple[str, ...] = ()
    """ listing categories to exclude, i.e. `houseShare`, `retirement`, `student` """

    furnish_types: Tuple[str, ...] = ()
    """ i.e. `furnished`, `partFurnished`, `unfurnished` """

    def as_params(self) -> Dict[str, Union[str, int, float]]:
        """ query parameters for these filters, a new dictionary on every call """
        params: Dict[str, Union[str, int, float]] = {"radius": self.radius}
        bounds = {
            "minPrice": self.min_price,
            "maxPrice": self.max_price,
            "minBedrooms": self.min_bedrooms,
            "maxBedrooms": self.max_bedrooms,
        }
        params.update({k: v for k, v in bounds.items() if v is not None})
        if self.dont_show:
            params["dontShow"] = ",".join(self.dont_show)
        if self.furnish_types:
            params["furnishTypes"] = ",".join(self.furnish_types)
        return params


@dataclass(frozen=True)
class SearchLocation():
    """ one area to search, identified by an opaque token such as `REGION^87490` """

    name: str
    """ the name given to the location in the settings """

    identifier: str

    filters: SearchFilters

    def search_params(self) -> Dict[str, Union[str, int, float]]:
        params = self.filters.as_params()
        params["locationIdentifier"] = self.identifier
        return params


RECORD_COLUMNS: List[str] = [
    "url",
    "scraped_on",
    "title",
    "price",
    "address",
    "nearest_stations",
    "availability",
    "furnishing",
    "deposit",
]
""" the column order of the ledger """


def to_record(listing: Listing) -> List[str]:
    """ projects a listing onto the ledger columns """
    return [
        listing.url,
        listing.scraped_on.isoformat(),
        listing.title,
        listing.price,
        listing.address,
        ", ".join(listing.nearest_stations),
        listing.availability.as_cell(),
        listing.furnishing,
        listing.deposit,
    ]


@dataclass
class RunSummary():
    """ what a single run found and wrote """

    store: str
    """ identifier of the store listings were written to """

    location_counts: Dict[str, int] = field(default_factory=dict)
    """ number of listings found for each location, in search order """

    skipped_locations: List[str] = field(default_factory=list)
    """ locations whose search could not be fetched """

    eligible: int = 0
    """ listings left after filtering by lead time """

    written: int = 0
    """ listings that were new and written to the store """

    duplicates: int = 0
    """ listings that were already in the store """

    new_listings: List[Listing] = field(default_factory=list)
    """ the listings written during this run """

    def report(self) -> List[str]:
        """ the plain text lines logged at the end of a run """
        lines = []
        for name, count in self.location_counts.items():
            suffix = " (skipped, search failed)" if name in self.skipped_locations else ""
            lines.append(f"{name}: {count} listings{suffix}")
        lines.append(f"eligible: {self.eligible}")
        lines.append(f"written: {self.written}")
        lines.append(f"duplicates: {self.duplicates}")
        lines.append(f"store: {self.store}")
        return lines
