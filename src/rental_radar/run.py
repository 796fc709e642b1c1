import argparse
import datetime
import logging
import sys
import time
from typing import List, Optional

from croniter import croniter
from dotenv import load_dotenv

from rental_radar.backends import DocumentFetcher
from rental_radar.backends.rightmove import Rightmove
from rental_radar.data import RunSummary
from rental_radar.data.store import CsvListingStore, ListingStore
from rental_radar.email import EmailNotifier
from rental_radar.errors import ConfigurationError, PersistenceError
from rental_radar.filters import filter_by_lead_time
from rental_radar.settings import Settings, configure_logging, load_settings
from rental_radar.util import random_in_range


def execute(settings: Settings,
            fetcher: Optional[DocumentFetcher] = None,
            store: Optional[ListingStore] = None,
            notifier: Optional[EmailNotifier] = None,
            today: Optional[datetime.date] = None) -> RunSummary:
    """ runs the scrape, filter, persist and notify steps once and returns what happened.

        collaborators not given are built from the settings, a notifier is only built when email settings exist.
        :raises:
            PersistenceError: if the store cannot be read or written
    """
    logging.info("Executing scraping and persistence routines")
    if fetcher is None:
        fetcher = DocumentFetcher(
            timeout=settings.request_timeout, delay=tuple(settings.request_delay))
    if store is None:
        store = CsvListingStore(settings.store_path)
    if notifier is None and settings.email is not None:
        notifier = EmailNotifier(settings.email)

    provider = Rightmove(fetcher, base_url=settings.base_url,
                         max_pages=settings.max_pages)
    listings = provider.retrieve_all_listings(settings.search_locations())

    eligible = filter_by_lead_time(
        listings, settings.lead_time_weeks, today=today)

    already_written = len(store.written_listings)
    written, duplicates = store.add_listings(eligible)

    summary = RunSummary(
        store=store.identifier,
        location_counts=dict(provider.location_counts),
        skipped_locations=list(provider.skipped_locations),
        eligible=len(eligible),
        written=written,
        duplicates=duplicates,
        new_listings=store.written_listings[already_written:],
    )
    for line in summary.report():
        logging.info(line)

    if notifier is not None:
        notifier.notify(summary)
    return summary


def run_forever(settings: Settings, settings_path: Optional[str] = None):
    """ runs on the cron schedule of the settings, plus a random variation, until interrupted """
    while True:
        # settings are reloaded every cycle so they can be changed between runs
        try:
            settings = load_settings(settings_path)
        except ConfigurationError as E:
            logging.error(f"Invalid configuration, keeping the previous settings: {E}")

        start = datetime.datetime.now()
        cron_iter = croniter(settings.cron_expression, start)

        next_date: datetime.datetime = cron_iter.get_next(
            ret_type=datetime.datetime)
        random_minutes = random_in_range(
            0, settings.cron_expression_variation)
        logging.info(f"Next cron trigger: {next_date}")
        randomized_trigger = next_date + \
            datetime.timedelta(minutes=random_minutes)
        logging.info(
            f"Adding random variation of {random_minutes:.2f} minutes, new trigger {randomized_trigger}")

        sleep_time = randomized_trigger - datetime.datetime.now()
        logging.info(f"Sleeping for {sleep_time}")
        time.sleep(max(sleep_time.total_seconds(), 0))

        try:
            execute(settings)
        except PersistenceError:
            logging.exception("Could not write to the listing store, run aborted.")
        except Exception as E:
            logging.error("Exception in scraping run.")
            logging.exception(E)


def main(argv: Optional[List[str]] = None) -> int:
    load_dotenv()
    parser = argparse.ArgumentParser(
        prog="rental_radar", description="Finds new rental listings available after a lead time and stores them.")
    parser.add_argument("--settings", default=None,
                        help="path to the settings json, defaults to settings-<ENV>.json")
    parser.add_argument("--once", action="store_true",
                        help="run a single time instead of following the cron expression")
    args = parser.parse_args(argv)

    try:
        settings = load_settings(args.settings)
    except ConfigurationError as E:
        logging.error(f"Invalid configuration: {E}")
        return 2
    configure_logging(settings)

    if not args.once:
        run_forever(settings, args.settings)
        return 0

    try:
        execute(settings)
    except PersistenceError:
        logging.exception("Could not write to the listing store, run aborted.")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
