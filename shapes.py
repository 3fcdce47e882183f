"""
Conversion between persisted rows and the client-facing tournament shape.

Rows use snake_case names and store coordinates as [lat, lon]; the client
(and the map widget behind it) expects camelCase and [lon, lat]. Every read
goes through ``to_client`` and every write through ``to_row``, so the
coordinate pair is swapped exactly once per boundary crossing.
"""
from typing import Optional

PLACEHOLDER_IMAGE = "/placeholder.svg"

# persisted name -> client name
FIELDS = {
    "id": "id",
    "name": "name",
    "location": "location",
    "date": "date",
    "date_to": "dateTo",
    "disciplines": "disciplines",
    "description": "description",
    "venue_details": "venueDetails",
    "registration_link": "registrationLink",
    "rules_link": "rulesLink",
    "contact_email": "contactEmail",
    "logo_url": "logoUrl",
    "coordinates": "coordinates",
    "submitted_by": "submittedBy",
}

STAGED_FIELDS = dict(FIELDS, created_at="createdAt", resolved="resolved")

_CLIENT_TO_PERSISTED = {client: persisted for persisted, client in FIELDS.items()}


def swap_coordinates(pair) -> Optional[list]:
    if not isinstance(pair, (list, tuple)) or len(pair) != 2:
        return None
    first, second = pair
    return [second, first]


def _convert(row: dict, fields: dict) -> dict:
    out = {client: row.get(persisted) for persisted, client in fields.items()}
    out["dateTo"] = out["dateTo"] or out["date"]
    out["disciplines"] = out["disciplines"] or []
    out["coordinates"] = swap_coordinates(row.get("coordinates"))
    out["submittedBy"] = out["submittedBy"] or ""
    out["image"] = row.get("image") or row.get("logo_url") or PLACEHOLDER_IMAGE
    return out


def to_client(row: dict, latest_update: Optional[dict] = None) -> dict:
    """Published tournament row -> client dict, with its newest update attached."""
    out = _convert(row, FIELDS)
    out["latestUpdate"] = update_to_client(latest_update) if latest_update else None
    return out


def staged_to_client(row: dict) -> dict:
    out = _convert(row, STAGED_FIELDS)
    out["resolved"] = bool(out["resolved"])
    return out


def to_row(payload: dict) -> dict:
    """Client dict -> persisted row.

    Only keys present in ``payload`` are emitted, so partial updates stay
    partial. Unknown keys and ``id`` are dropped.
    """
    row = {}
    for key, value in payload.items():
        persisted = _CLIENT_TO_PERSISTED.get(key)
        if persisted is None or persisted == "id":
            continue
        row[persisted] = value
    if "coordinates" in row:
        row["coordinates"] = swap_coordinates(row["coordinates"])
    return row


def update_to_client(row: dict) -> dict:
    return {
        "id": row.get("id"),
        "tournamentId": row.get("tournament_id"),
        "message": row.get("message"),
        "createdAt": row.get("created_at"),
    }
