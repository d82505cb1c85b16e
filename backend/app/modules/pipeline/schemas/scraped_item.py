"""
Scraped Item Schema
Validated shape of one Apify dataset item.

The actor returns two shapes: a post authored by the profile (author) and an
activity of the profile on someone else's post (activityOfUser). Which person
block identifies the scraped profile is resolved here, once.
"""
from datetime import datetime
from typing import Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from app.modules.pipeline.constants import LINKEDIN_PROFILE_BASE
from app.shared.utils.text_utils import clean_text, normalize_linkedin_url
from app.shared.utils.time_utils import parse_flexible_timestamp, parse_iso_datetime


class ScrapedPerson(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    first_name: Optional[str] = Field(default=None, alias="firstName")
    last_name: Optional[str] = Field(default=None, alias="lastName")
    occupation: Optional[str] = None
    public_id: Optional[str] = Field(default=None, alias="publicId")


class ScrapedItem(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    urn: Optional[str] = None
    text: Optional[str] = None
    url: Optional[str] = None
    input_url: Optional[str] = Field(default=None, alias="inputUrl")
    author_profile_url: Optional[str] = Field(default=None, alias="authorProfileUrl")
    is_activity: bool = Field(default=False, alias="isActivity")
    author: Optional[ScrapedPerson] = None
    activity_of_user: Optional[ScrapedPerson] = Field(default=None, alias="activityOfUser")
    posted_at_timestamp: Optional[Union[int, float, str]] = Field(default=None, alias="postedAtTimestamp")
    posted_at_iso: Optional[str] = Field(default=None, alias="postedAtISO")

    @property
    def person(self) -> Optional[ScrapedPerson]:
        """The scraped profile's own identity block."""
        return self.activity_of_user if self.is_activity else self.author

    def profile_url(self) -> str:
        """
        Normalized URL of the scraped profile:
        inputUrl, then authorProfileUrl, then a URL built from a publicId.
        """
        candidate = self.input_url or self.author_profile_url
        if not candidate:
            for person in (self.author, self.activity_of_user):
                if person and person.public_id:
                    candidate = f"{LINKEDIN_PROFILE_BASE}{person.public_id}"
                    break
        return normalize_linkedin_url(candidate)

    def display_name(self) -> str:
        person = self.person
        if not person:
            return ""
        parts = [clean_text(person.first_name), clean_text(person.last_name)]
        return " ".join(p for p in parts if p).strip()

    def occupation(self) -> str:
        person = self.person
        return clean_text(person.occupation) if person else ""

    def posted_at(self) -> Optional[datetime]:
        """postedAtTimestamp first, postedAtISO as fallback."""
        parsed = parse_flexible_timestamp(self.posted_at_timestamp)
        if parsed is None and self.posted_at_iso:
            parsed = parse_iso_datetime(self.posted_at_iso)
        return parsed
