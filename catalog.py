"""
Published tournaments, their update feeds, favourites and ownership.
"""
import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Iterable, List, Optional, Set

import shapes
from database import UpstreamError
from errors import Conflict, InvalidInput, NotFound, PermissionDenied
from identity import Identity, can_edit
from schemas import (
    TOURNAMENT_OWNERS,
    TOURNAMENT_UPDATES,
    TOURNAMENTS,
    USER_FAVOURITES,
    Favourite,
    TournamentPatch,
    TournamentUpdate,
)

logger = logging.getLogger(__name__)


@dataclass
class TournamentFilter:
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    disciplines: List[str] = field(default_factory=list)
    types: List[str] = field(default_factory=list)
    tournament_ids: Optional[Set[int]] = None

    def matches(self, tournament: dict) -> bool:
        if self.tournament_ids is not None and tournament["id"] not in self.tournament_ids:
            return False
        if self.start_date or self.end_date:
            starts = _parse_date(tournament.get("date"))
            if starts is None:
                return False
            if self.start_date and starts < self.start_date:
                return False
            if self.end_date and starts > self.end_date:
                return False
        disciplines = tournament.get("disciplines") or []
        if self.disciplines and not any(d.get("name") in self.disciplines for d in disciplines):
            return False
        if self.types and not any(d.get("type") in self.types for d in disciplines):
            return False
        return True


def _parse_date(value) -> Optional[date]:
    if not value:
        return None
    try:
        return date.fromisoformat(str(value)[:10])
    except ValueError:
        return None


def _sort_key(tournament: dict):
    starts = _parse_date(tournament.get("date"))
    return (starts is None, starts or date.max, (tournament.get("name") or "").lower())


def latest_updates(db, tournament_ids: List[int]) -> dict:
    """tournament id -> newest update row, for the given tournaments only."""
    latest = {}
    if not tournament_ids:
        return latest
    rows = db.get_documents(
        TOURNAMENT_UPDATES,
        within={"tournament_id": tournament_ids},
        order="created_at.desc",
    )
    for row in rows:
        latest.setdefault(row.get("tournament_id"), row)
    return latest


def list_tournaments(db, filters: Optional[TournamentFilter] = None) -> List[dict]:
    rows = db.get_documents(TOURNAMENTS)
    updates = latest_updates(db, [row["id"] for row in rows if row.get("id") is not None])
    tournaments = [shapes.to_client(row, updates.get(row.get("id"))) for row in rows]
    if filters is not None:
        tournaments = [t for t in tournaments if filters.matches(t)]
    tournaments.sort(key=_sort_key)
    logger.info("Listing %d of %d tournaments", len(tournaments), len(rows))
    return tournaments


def _get_row(db, tournament_id: int) -> dict:
    row = db.get_document(TOURNAMENTS, {"id": tournament_id})
    if row is None:
        raise NotFound("Tournament not found")
    return row


def get_tournament(db, tournament_id: int) -> dict:
    row = _get_row(db, tournament_id)
    updates = list_updates(db, tournament_id)
    out = shapes.to_client(row)
    out["latestUpdate"] = updates[0] if updates else None
    return out


def patch_tournament(db, who: Identity, tournament_id: int, patch: TournamentPatch) -> dict:
    changes = shapes.to_row(patch.model_dump(mode="json", by_alias=True, exclude_unset=True))
    if not changes:
        raise InvalidInput("No updatable fields provided")
    _get_row(db, tournament_id)
    if not can_edit(db, who, tournament_id):
        raise PermissionDenied("You do not have permission to edit this tournament")

    updated = db.update_documents(TOURNAMENTS, {"id": tournament_id}, changes)
    logger.info("Tournament %s updated by %s: %s", tournament_id, who.user_id, sorted(changes))
    row = updated[0] if updated else _get_row(db, tournament_id)
    return shapes.to_client(row)


# Update feed

def list_updates(db, tournament_id: int) -> List[dict]:
    rows = db.get_documents(TOURNAMENT_UPDATES, {"tournament_id": tournament_id}, order="created_at.desc")
    return [shapes.update_to_client(row) for row in rows]


def append_update(db, who: Identity, tournament_id: int, message: str) -> dict:
    _get_row(db, tournament_id)
    if not can_edit(db, who, tournament_id):
        raise PermissionDenied("You do not have permission to add updates to this tournament")
    message = (message or "").strip()
    if not message:
        raise InvalidInput("Message is required")

    row = db.create_document(TOURNAMENT_UPDATES, TournamentUpdate(tournament_id=tournament_id, message=message))
    logger.info("Created update %s for tournament %s", row.get("id"), tournament_id)
    return shapes.update_to_client(row)


# Favourites and ownership

def _ids(rows: Iterable[dict], column: str) -> List[int]:
    return [row[column] for row in rows if row.get(column) is not None]


def favourite_ids(db, user_id: str) -> List[int]:
    return _ids(db.get_documents(USER_FAVOURITES, {"user_id": user_id}, columns="tournament"), "tournament")


def toggle_favourite(db, who: Identity, tournament_id: int, action: str) -> List[int]:
    """Add or remove one favourite and return the caller's full favourite set."""
    if action == "add":
        _get_row(db, tournament_id)
        if db.get_documents(USER_FAVOURITES, {"user_id": who.user_id, "tournament": tournament_id}):
            raise Conflict("Tournament already in favorites")
        try:
            db.create_document(USER_FAVOURITES, Favourite(user_id=who.user_id, tournament=tournament_id))
        except UpstreamError as exc:
            if exc.status_code == 409:
                raise Conflict("Tournament already in favorites")
            raise
    elif action == "remove":
        db.delete_documents(USER_FAVOURITES, {"user_id": who.user_id, "tournament": tournament_id})
    else:
        raise InvalidInput("Invalid action. Use 'add' or 'remove'.")
    logger.info("User %s %s favourite %s", who.user_id, action, tournament_id)
    return favourite_ids(db, who.user_id)


def owned_tournament_ids(db, user_id: str) -> List[int]:
    return _ids(db.get_documents(TOURNAMENT_OWNERS, {"user_id": user_id}, columns="tournament_id"), "tournament_id")
