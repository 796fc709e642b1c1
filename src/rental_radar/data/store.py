import csv
import logging
import os
from typing import Iterable, List, Optional, Set, Tuple

from rental_radar.data import RECORD_COLUMNS, Listing, to_record
from rental_radar.errors import PersistenceError


class ListingStore():
    """ an append only ledger of listings keyed by url.

        a listing is never removed or updated once written, so the ledger is the single source of
        truth for which listings were already seen on previous runs.
    """

    def __init__(self) -> None:
        self.written_listings: List[Listing] = []
        """ listings appended through this instance, in the order they were written """

    @property
    def identifier(self) -> str:
        """ human readable name of the store used in reports """
        raise NotImplementedError()

    def exists(self, url: str) -> bool:
        raise NotImplementedError()

    def _insert(self, listing: Listing) -> None:
        raise NotImplementedError()

    def add_listings(self, listings: Iterable[Listing]) -> Tuple[int, int]:
        """ writes every listing whose url is not in the store yet, in input order.

            returns the number of listings written and the number of listings already known.
            :raises:
                PersistenceError: if the store cannot be written to
        """
        written = 0
        duplicates = 0
        for listing in listings:
            if self.exists(listing.url):
                logging.debug(f"Already stored: {listing.url}")
                duplicates += 1
                continue
            self._insert(listing)
            self.written_listings.append(listing)
            written += 1
        logging.info(
            f"Wrote {written} listings to {self.identifier}, {duplicates} were already stored")
        return written, duplicates


class CsvListingStore(ListingStore):
    """ ledger kept as a csv file with a header row matching `RECORD_COLUMNS`, new rows are appended at the end """

    def __init__(self, path: str) -> None:
        super().__init__()
        self.path = path
        self._urls: Optional[Set[str]] = None

    @property
    def identifier(self) -> str:
        return self.path

    def _load_urls(self) -> Set[str]:
        if self._urls is not None:
            return self._urls

        urls: Set[str] = set()
        if os.path.exists(self.path):
            try:
                with open(self.path, 'r', newline='', encoding='utf-8') as f:
                    reader = csv.reader(f)
                    header = next(reader, None)
                    if header is not None and header != RECORD_COLUMNS:
                        raise PersistenceError(
                            f"{self.path} has columns {header}, expected {RECORD_COLUMNS}")
                    for row in reader:
                        if row:
                            urls.add(row[0])
            except (OSError, csv.Error) as E:
                raise PersistenceError(f"Could not read {self.path}: {E}") from E
        logging.info(f"Loaded {len(urls)} stored listings from {self.path}")
        self._urls = urls
        return urls

    def exists(self, url: str) -> bool:
        return url in self._load_urls()

    def _ends_with_newline(self) -> bool:
        with open(self.path, 'rb') as f:
            f.seek(-1, os.SEEK_END)
            return f.read(1) == b"\n"

    def _insert(self, listing: Listing) -> None:
        urls = self._load_urls()
        try:
            directory = os.path.dirname(self.path)
            if directory:
                os.makedirs(directory, exist_ok=True)
            write_header = not os.path.exists(self.path) or os.path.getsize(self.path) == 0
            missing_newline = not write_header and not self._ends_with_newline()
            with open(self.path, 'a', newline='', encoding='utf-8') as f:
                if missing_newline:
                    # the last row was left unterminated, i.e. by a hand edit
                    f.write("\r\n")
                writer = csv.writer(f)
                if write_header:
                    writer.writerow(RECORD_COLUMNS)
                writer.writerow(to_record(listing))
        except (OSError, csv.Error) as E:
            raise PersistenceError(f"Could not write to {self.path}: {E}") from E
        urls.add(listing.url)
