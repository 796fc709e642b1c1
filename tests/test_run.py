import json
from datetime import date
from unittest.mock import MagicMock

import pytest

from rental_radar import run
from rental_radar.data.store import CsvListingStore
from rental_radar.email import EmailNotifier
from rental_radar.errors import PersistenceError
from rental_radar.settings import EmailSettings, parse_settings
from fakes import FakeFetcher, listing_page, make_listing, search_page

BASE_URL = "https://www.rightmove.co.uk"
TODAY = date(2026, 10, 19)


def url(n: int) -> str:
    return f"{BASE_URL}/properties/{n}"


@pytest.fixture
def settings():
    return parse_settings(json.dumps({
        "locations": {"Islington": "REGION^1", "Hackney": "REGION^2"},
        "min_price": 1000,
        "max_price": 2000,
        "lead_time_weeks": 7,
    }))


@pytest.fixture
def fetcher():
    return FakeFetcher(
        searches={"REGION^1": search_page("Islington, London", [url(1), url(2), url(3)])},
        pages={
            url(1): listing_page("flat 1", "15/01/2027"),
            url(2): listing_page("flat 2", "20/01/2027"),
            url(3): listing_page("flat 3", "25/01/2027"),
        },
    )


@pytest.fixture
def store(tmp_path):
    store = CsvListingStore(str(tmp_path / "listings.csv"))
    # seen on an earlier run
    CsvListingStore(store.path).add_listings([make_listing(url(3))])
    return store


@pytest.fixture
def notifier(monkeypatch):
    notifier = EmailNotifier(EmailSettings(recipients=["me@example.com"]))
    monkeypatch.setattr(notifier, "dispatch", MagicMock())
    return notifier


def test_one_location_failing_does_not_stop_the_run(settings, fetcher, store, notifier):
    summary = run.execute(settings, fetcher=fetcher, store=store, notifier=notifier, today=TODAY)

    assert summary.location_counts == {"Islington": 3, "Hackney": 0}
    assert summary.skipped_locations == ["Hackney"]
    assert summary.eligible == 3
    assert summary.written == 2
    assert summary.duplicates == 1
    assert [l.url for l in summary.new_listings] == [url(1), url(2)]
    assert summary.store == store.path

    notifier.dispatch.assert_called_once()
    _, body = notifier.dispatch.call_args[0]
    assert "Eligible listings: <b>3</b>" in body
    assert "New listings written: <b>2</b>" in body
    assert "Already known: <b>1</b>" in body


def test_second_run_writes_nothing_and_sends_nothing(settings, fetcher, store, notifier):
    run.execute(settings, fetcher=fetcher, store=store, notifier=notifier, today=TODAY)
    notifier.dispatch.reset_mock()

    summary = run.execute(settings, fetcher=fetcher, store=CsvListingStore(store.path),
                          notifier=notifier, today=TODAY)

    assert (summary.written, summary.duplicates) == (0, 3)
    assert summary.new_listings == []
    notifier.dispatch.assert_not_called()


def test_listings_too_soon_are_not_stored(settings, fetcher, store, notifier):
    fetcher.pages[url(1)] = listing_page("flat 1", "Now")
    fetcher.pages[url(2)] = listing_page("flat 2", "01/12/2026")

    summary = run.execute(settings, fetcher=fetcher, store=store, notifier=notifier, today=TODAY)

    assert summary.eligible == 1
    assert (summary.written, summary.duplicates) == (0, 1)
    notifier.dispatch.assert_not_called()


def test_without_lead_time_everything_is_eligible(fetcher, store, notifier):
    settings = parse_settings(json.dumps({"locations": {"Islington": "REGION^1"}}))
    fetcher.pages[url(1)] = listing_page("flat 1")

    summary = run.execute(settings, fetcher=fetcher, store=store, notifier=notifier, today=TODAY)

    assert summary.eligible == 3
    assert summary.written == 2


def test_persistence_failure_aborts_the_run(settings, fetcher, tmp_path, notifier):
    directory = tmp_path / "listings.csv"
    directory.mkdir()

    with pytest.raises(PersistenceError):
        run.execute(settings, fetcher=fetcher, store=CsvListingStore(str(directory)),
                    notifier=notifier, today=TODAY)
    notifier.dispatch.assert_not_called()


def test_invalid_settings_exit_before_fetching(tmp_path, monkeypatch):
    path = tmp_path / "settings-test.json"
    path.write_text(json.dumps({"locations": {"Islington": "Islington"}}), encoding="utf-8")
    execute = MagicMock()
    monkeypatch.setattr(run, "execute", execute)

    assert run.main(["--settings", str(path), "--once"]) == 2
    execute.assert_not_called()


def test_single_run_from_the_command_line(tmp_path, monkeypatch):
    path = tmp_path / "settings-test.json"
    path.write_text(json.dumps({"locations": {"Islington": "REGION^1"}}), encoding="utf-8")
    execute = MagicMock()
    monkeypatch.setattr(run, "execute", execute)
    monkeypatch.setattr(run, "configure_logging", MagicMock())

    assert run.main(["--settings", str(path), "--once"]) == 0
    execute.assert_called_once()


def test_scheduled_runs_carry_on_after_an_unexpected_error(settings, monkeypatch):
    # the second run stops the loop, KeyboardInterrupt is not an Exception
    execute = MagicMock(side_effect=[RuntimeError("site changed"), KeyboardInterrupt()])
    load_settings = MagicMock(return_value=settings)
    monkeypatch.setattr(run, "execute", execute)
    monkeypatch.setattr(run, "load_settings", load_settings)
    monkeypatch.setattr(run.time, "sleep", MagicMock())

    with pytest.raises(KeyboardInterrupt):
        run.run_forever(settings, "settings-test.json")

    assert execute.call_count == 2
    assert load_settings.call_count == 2
    load_settings.assert_called_with("settings-test.json")
