class RentalRadarError(Exception):
    """ base class of every error raised by rental_radar """


class ConfigurationError(RentalRadarError):
    """ settings are missing or invalid, raised before anything is fetched """


class FetchError(RentalRadarError):
    """ a remote document could not be retrieved (transport failure, timeout or non-success status) """

    def __init__(self, url: str, reason: str) -> None:
        super().__init__(f"failed to fetch {url}: {reason}")
        self.url = url
        self.reason = reason


class ParseError(RentalRadarError):
    """ a fetched document could not be turned into a listing at all """


class PersistenceError(RentalRadarError):
    """ the listing store could not be read or written, the run cannot report accurate counts """


class NotificationError(RentalRadarError):
    """ a notification could not be delivered """
