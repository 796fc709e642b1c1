

from dataclasses import dataclass, field
import json
import logging
import os
import re
from typing import Dict, List, Optional

from logging.handlers import TimedRotatingFileHandler

from dataclasses_json import dataclass_json
from marshmallow import ValidationError

from rental_radar.data import SearchFilters, SearchLocation
from rental_radar.errors import ConfigurationError

LOCATION_IDENTIFIER = re.compile(r"[A-Z_]+\^\d+")
""" location tokens look like `REGION^87490` or `OUTCODE^1666`, the rest of the scheme is opaque """


@dataclass_json
@dataclass
class EmailSettings():
    recipients: List[str]
    """ the emails to use when sending updates about new listings """

    template: Optional[str] = None
    """ path to a jinja2 template for the summary email, the bundled template is used if not given.
        The template is rendered with `summary` (the run summary) and `date`.
    """

    smtp_server: str = "smtp.gmail.com"

    smtp_port: int = 587
    """ port used with starttls """


@dataclass_json
@dataclass
class Settings():
    locations: Dict[str, str]
    """ names of the locations to search mapped to their location identifiers, searched in order """

    min_price: Optional[int] = None
    """ the minimum monthly price of a listing """

    max_price: Optional[int] = None
    """ the maximum monthly price of a listing """

    min_bedrooms: Optional[int] = None
    """ minimum number of bedrooms """

    max_bedrooms: Optional[int] = None
    """ maximum number of bedrooms """

    radius: float = 0.0
    """ miles around each location to include in the search """

    dont_show: List[str] = field(default_factory=list)
    """ listing categories to exclude, i.e. houseShare, retirement, student """

    furnish_types: List[str] = field(default_factory=list)
    """ furnishing types to search for, i.e. furnished, partFurnished, unfurnished """

    lead_time_weeks: Optional[int] = None
    """ minimum number of weeks between today and the date a listing is available from, no filtering if not set """

    email: Optional[EmailSettings] = None
    """ where to send notifications about new listings, nothing is sent if not set """

    store_path: str = "data/listings.csv"
    """ the csv ledger new listings are appended to """

    base_url: str = "https://www.rightmove.co.uk"
    """ the site to search """

    max_pages: int = 1
    """ the maximum number of result pages to scrape per location """

    request_timeout: float = 30
    """ seconds to wait for a page before giving up on it """

    request_delay: List[float] = field(default_factory=lambda: [1.0, 3.0])
    """ (min seconds, max seconds) to wait before each request """

    cron_expression: str = "0 9 * * *"
    """ the cron expression to use for scheduling runs +/- cron_expression_variation in minutes """

    cron_expression_variation: float = 0
    """ random number of minutes to add unpredictability """

    logging_level: str = "INFO"
    """  the log level, options: DEBUG, INFO, WARNING, ERROR """

    def search_filters(self) -> SearchFilters:
        return SearchFilters(
            radius=self.radius,
            min_price=self.min_price,
            max_price=self.max_price,
            min_bedrooms=self.min_bedrooms,
            max_bedrooms=self.max_bedrooms,
            dont_show=tuple(self.dont_show),
            furnish_types=tuple(self.furnish_types),
        )

    def search_locations(self) -> List[SearchLocation]:
        """ the locations to search, in the order they appear in the settings, all sharing the same filters """
        filters = self.search_filters()
        return [SearchLocation(name, identifier, filters) for name, identifier in self.locations.items()]


def _is_number(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def validate_settings(settings: Settings) -> Settings:
    """ checks the settings make sense before anything is fetched

        :raises:
            ConfigurationError: describing the first problem found
    """
    if not settings.locations:
        raise ConfigurationError("at least one location is required")

    for name, identifier in settings.locations.items():
        if not isinstance(identifier, str) or not LOCATION_IDENTIFIER.fullmatch(identifier):
            raise ConfigurationError(
                f"location `{name}` has a malformed identifier: `{identifier}`")

    bounds = {
        "radius": settings.radius,
        "min_price": settings.min_price,
        "max_price": settings.max_price,
        "min_bedrooms": settings.min_bedrooms,
        "max_bedrooms": settings.max_bedrooms,
        "lead_time_weeks": settings.lead_time_weeks,
    }
    for name, value in bounds.items():
        if value is not None and not _is_number(value):
            raise ConfigurationError(f"`{name}` must be a number, got: {value!r}")
        if value is not None and value < 0:
            raise ConfigurationError(f"`{name}` must not be negative, got: {value}")

    for low, high in (("min_price", "max_price"), ("min_bedrooms", "max_bedrooms")):
        if bounds[low] is not None and bounds[high] is not None and bounds[low] > bounds[high]:
            raise ConfigurationError(
                f"`{low}` ({bounds[low]}) is larger than `{high}` ({bounds[high]})")

    if settings.max_pages < 1:
        raise ConfigurationError("`max_pages` must be at least 1")

    if len(settings.request_delay) != 2 or settings.request_delay[0] > settings.request_delay[1]:
        raise ConfigurationError(
            f"`request_delay` must be [min seconds, max seconds], got: {settings.request_delay}")

    if settings.logging_level not in logging._nameToLevel:
        raise ConfigurationError(
            f"unknown logging level: {settings.logging_level}")

    if settings.email is not None and not settings.email.recipients:
        raise ConfigurationError("`email` is set but has no recipients")

    return settings


def parse_settings(data: str) -> Settings:
    """ parses the json contents of a settings file into a validated Settings object """
    try:
        settings: Settings = Settings.schema().loads(data)
    except json.JSONDecodeError as E:
        raise ConfigurationError(f"settings are not valid json: {E}") from E
    except ValidationError as E:
        raise ConfigurationError(f"invalid settings: {E.messages}") from E
    except (TypeError, KeyError) as E:
        # raised when building the dataclasses from incomplete data
        raise ConfigurationError(f"invalid settings: {E}") from E
    return validate_settings(settings)


def load_settings(path: Optional[str] = None) -> Settings:
    """ looks for settings-<os.getenv('ENV')>.json file in the current directory, unless a path is given, and parses it into a Settings object"""
    settings_location = path or f"settings-{str(os.getenv('ENV', 'dev'))}.json"
    logging.info(f"loading settings from: {settings_location}")

    try:
        with open(settings_location, "r") as f:
            data = f.read()
    except OSError as E:
        raise ConfigurationError(
            f"could not read settings file {settings_location}: {E}") from E
    return parse_settings(data)


def configure_logging(settings: Settings, log_dir: str = "logs"):
    """ sets the log level and adds a daily rotating log file """
    print(f"log level: {settings.logging_level}")
    os.makedirs(log_dir, exist_ok=True)
    logging.basicConfig(
        level=logging._nameToLevel[settings.logging_level], force=True)
    logging.getLogger().addHandler(TimedRotatingFileHandler(
        os.path.join(log_dir, 'log'), when='D', interval=1, backupCount=7))
