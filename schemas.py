"""
Database Schemas for the Tournament Finder Service

Each Pydantic model in the first half of this module represents a table in the
hosted backend. Field names follow the persisted (snake_case) convention and
coordinates are stored as [latitude, longitude].

The second half holds request bodies. Those accept the client-facing camelCase
names and [longitude, latitude] coordinates; ``shapes`` converts between the
two.
"""
from datetime import date as Date, datetime
from typing import List, Literal, Optional, Tuple

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator
from pydantic.alias_generators import to_camel

TOURNAMENTS = "tournaments"
STAGED_TOURNAMENTS = "staged_tournaments"
TOURNAMENT_OWNERS = "tournament_owners"
TOURNAMENT_UPDATES = "tournament_updates"
USER_FAVOURITES = "user_favourites"


def _blank_to_none(value):
    if isinstance(value, str) and not value.strip():
        return None
    return value


class Discipline(BaseModel):
    name: str = Field(..., description="Weapon or discipline, e.g. Longsword")
    type: str = Field("Open", description="Category: Open|Men|Women|Women+|Beginner|Invitational|Other")


class Tournament(BaseModel):
    name: str = Field(..., description="Public tournament name")
    location: Optional[str] = Field(None, description="City and country")
    date: Optional[Date] = Field(None, description="First day of the tournament")
    date_to: Optional[Date] = Field(None, description="Last day; defaults to date")
    disciplines: List[Discipline] = Field(default_factory=list, description="(discipline, category) pairs in display order")
    description: Optional[str] = Field(None, description="Free-text description")
    venue_details: Optional[str] = Field(None, description="Venue name and address")
    registration_link: Optional[str] = Field(None, description="Registration URL")
    rules_link: Optional[str] = Field(None, description="Rules URL")
    contact_email: Optional[EmailStr] = Field(None, description="Organizer contact email")
    logo_url: Optional[str] = Field(None, description="Public URL of the uploaded logo")
    coordinates: Optional[Tuple[float, float]] = Field(None, description="[latitude, longitude]")
    submitted_by: Optional[str] = Field(None, description="Display identity of the submitter")
    created_at: Optional[datetime] = Field(None, description="Creation timestamp (UTC)")

    @field_validator("contact_email", mode="before")
    @classmethod
    def blank_email(cls, value):
        return _blank_to_none(value)


class StagedTournament(Tournament):
    user_id: Optional[str] = Field(None, description="Auth subject of the submitting user")
    resolved: bool = Field(False, description="Set once an administrator approved the submission")


class TournamentOwner(BaseModel):
    tournament_id: int = Field(..., description="Published tournament ID")
    user_id: str = Field(..., description="Auth subject granted edit rights")


class Favourite(BaseModel):
    user_id: str = Field(..., description="Auth subject")
    tournament: int = Field(..., description="Published tournament ID")


class TournamentUpdate(BaseModel):
    tournament_id: int = Field(..., description="Published tournament ID")
    message: str = Field(..., min_length=1, description="Announcement text")
    created_at: Optional[datetime] = Field(None, description="Creation timestamp (UTC)")


# Request bodies

class ClientModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class TournamentProposal(ClientModel):
    name: Optional[str] = None
    location: Optional[str] = None
    date: Optional[Date] = None
    date_to: Optional[Date] = None
    disciplines: List[Discipline] = Field(default_factory=list)
    description: Optional[str] = None
    venue_details: Optional[str] = None
    registration_link: Optional[str] = None
    rules_link: Optional[str] = None
    contact_email: Optional[EmailStr] = None
    logo_url: Optional[str] = None
    coordinates: Optional[Tuple[float, float]] = Field(None, description="[longitude, latitude]")
    submitted_by: Optional[str] = None

    @field_validator("contact_email", "date", "date_to", mode="before")
    @classmethod
    def blank_to_none(cls, value):
        return _blank_to_none(value)


class TournamentPatch(ClientModel):
    location: Optional[str] = None
    coordinates: Optional[Tuple[float, float]] = Field(None, description="[longitude, latitude]")
    description: Optional[str] = None
    venue_details: Optional[str] = None
    registration_link: Optional[str] = None
    rules_link: Optional[str] = None
    disciplines: Optional[List[Discipline]] = None


class UpdateRequest(ClientModel):
    message: str


class ApproveRequest(ClientModel):
    tournament_id: int = Field(..., gt=0)


class FavouriteRequest(ClientModel):
    tournament_id: int = Field(..., gt=0)
    action: Literal["add", "remove"]


class Credentials(ClientModel):
    email: EmailStr
    password: str
