from datetime import datetime, timezone

from app.modules.pipeline.schemas.scraped_item import ScrapedItem
from app.shared.utils.text_utils import clean_text, has_letters, normalize_linkedin_url
from app.shared.utils.time_utils import parse_flexible_timestamp, start_of_utc_day


# --- TEXT ---

def test_clean_text_strips_emoji_urls_and_emphasis():
    assert clean_text("🚀 We're *hiring*!  https://x.co/abc") == "We're hiring !"
    assert clean_text("Line one\n\n\tline two www.acme.com") == "Line one line two"
    assert clean_text("  ") == ""
    assert clean_text(None) == ""


def test_has_letters():
    assert has_letters("CEO") is True
    assert has_letters("Директор") is True
    assert has_letters("--- 123") is False
    assert has_letters("") is False


def test_normalize_linkedin_url():
    assert normalize_linkedin_url("https://www.linkedin.com/in/jane-doe/?miniProfileUrn=abc#x") == \
        "https://www.linkedin.com/in/jane-doe"
    assert normalize_linkedin_url("  https://www.linkedin.com/in/jane-doe//  ") == \
        "https://www.linkedin.com/in/jane-doe"
    assert normalize_linkedin_url("not a url") == "not a url"
    assert normalize_linkedin_url(None) == ""


# --- TIME ---

def test_parse_flexible_timestamp():
    expected = datetime(2026, 3, 10, 9, 30, tzinfo=timezone.utc)
    millis = int(expected.timestamp() * 1000)

    assert parse_flexible_timestamp(millis) == expected
    assert parse_flexible_timestamp(float(millis)) == expected
    assert parse_flexible_timestamp(str(millis)) == expected
    assert parse_flexible_timestamp("2026-03-10T09:30:00Z") == expected
    assert parse_flexible_timestamp("2026-03-10T11:30:00+02:00") == expected
    assert parse_flexible_timestamp("2026-03-10T09:30:00") == expected


def test_parse_flexible_timestamp_rejects_garbage():
    assert parse_flexible_timestamp(None) is None
    assert parse_flexible_timestamp(True) is None
    assert parse_flexible_timestamp("") is None
    assert parse_flexible_timestamp("2 days ago") is None
    assert parse_flexible_timestamp(float("nan")) is None
    assert parse_flexible_timestamp(1e20) is None
    assert parse_flexible_timestamp({"ms": 1}) is None


def test_start_of_utc_day():
    moment = datetime(2026, 3, 10, 23, 59, 59, tzinfo=timezone.utc)
    assert start_of_utc_day(moment) == datetime(2026, 3, 10, tzinfo=timezone.utc)


# --- SCRAPED ITEMS ---

def test_activity_item_names_the_active_profile():
    item = ScrapedItem.model_validate({
        "urn": "urn:li:activity:1",
        "isActivity": True,
        "author": {"firstName": "Someone", "lastName": "Else", "occupation": "Recruiter", "publicId": "someone"},
        "activityOfUser": {"firstName": "Jane", "lastName": "Doe", "occupation": "CEO *at* Acme", "publicId": "jane-doe"},
        "postedAtTimestamp": "1773135000000",
    })

    assert item.display_name() == "Jane Doe"
    assert item.occupation() == "CEO at Acme"
    assert item.profile_url() == "https://www.linkedin.com/in/someone"
    assert item.posted_at() == datetime(2026, 3, 10, 9, 30, tzinfo=timezone.utc)


def test_profile_url_prefers_input_url():
    item = ScrapedItem.model_validate({
        "inputUrl": "https://www.linkedin.com/in/jane-doe/",
        "authorProfileUrl": "https://www.linkedin.com/in/other",
        "unknownField": 1,
    })
    assert item.profile_url() == "https://www.linkedin.com/in/jane-doe"
    assert ScrapedItem.model_validate({}).profile_url() == ""
