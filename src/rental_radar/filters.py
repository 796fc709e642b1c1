from datetime import date, timedelta
import logging
from typing import Iterable, List, Optional

from rental_radar.data import Listing


def filter_by_lead_time(listings: Iterable[Listing], lead_time_weeks: Optional[int], today: Optional[date] = None) -> List[Listing]:
    """ keeps only listings available strictly later than `lead_time_weeks` from today.

        listings that are available now or do not say when they are available are dropped, as
        neither proves the lead time. Without a lead time every listing is kept.
    """
    listings = list(listings)
    if not lead_time_weeks:
        return listings

    if today is None:
        today = date.today()
    cutoff = today + timedelta(weeks=lead_time_weeks)

    eligible = []
    for listing in listings:
        if listing.availability.is_after(cutoff):
            eligible.append(listing)
        else:
            logging.debug(
                f"listing: {listing.url} available: {listing.availability.as_cell() or 'unspecified'} not after {cutoff}")

    logging.info(
        f"{len(eligible)} of {len(listings)} listings available after {cutoff}")
    return eligible
