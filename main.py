import logging
import os
import secrets
import time
from dataclasses import dataclass
from datetime import date
from typing import List, Optional

from fastapi import Depends, FastAPI, File, Header, HTTPException, Query, UploadFile
from fastapi.middleware.cors import CORSMiddleware

import catalog
import config
import database
import moderation
from database import Database
from errors import install_error_handlers
from identity import Identity, bearer_token, resolve
from schemas import (
    ApproveRequest,
    Credentials,
    FavouriteRequest,
    TournamentPatch,
    TournamentProposal,
    UpdateRequest,
)

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s | %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="HEMA Tournament Finder API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
install_error_handlers(app)

LOGO_EXTENSIONS = (".jpg", ".jpeg", ".png")
LOGO_CONTENT_TYPES = ("image/jpeg", "image/png")
MIN_PASSWORD_LENGTH = 6


# Request context

@dataclass
class Session:
    """Per-request caller context: the raw token, its claims and a backend
    handle that forwards the token."""
    token: str
    identity: Identity
    db: Database


def open_session(authorization: Optional[str]) -> Session:
    token = bearer_token(authorization)
    if not token:
        raise HTTPException(status_code=401, detail="Authentication required")
    who = resolve(token)
    if not who.user_id:
        raise HTTPException(status_code=401, detail="Invalid token")
    return Session(token=token, identity=who, db=database.open_db(token))


def get_session(authorization: Optional[str] = Header(None)) -> Session:
    return open_session(authorization)


def get_public_db() -> Database:
    return database.open_db()


def parse_id(value: str) -> int:
    try:
        tournament_id = int(value)
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid tournament ID")
    if tournament_id <= 0:
        raise HTTPException(status_code=400, detail="Invalid tournament ID")
    return tournament_id


@app.get("/")
def root():
    return {"service": "tournament-finder", "status": "ok"}


@app.get("/health")
def health():
    return {"ok": True}


# Tournaments

@app.get("/tournaments")
def list_tournaments(
    start_date: Optional[date] = Query(None, alias="startDate"),
    end_date: Optional[date] = Query(None, alias="endDate"),
    discipline: List[str] = Query([]),
    types: List[str] = Query([], alias="type"),
    favorites: bool = False,
    authorization: Optional[str] = Header(None),
    db: Database = Depends(get_public_db),
) -> List[dict]:
    filters = catalog.TournamentFilter(
        start_date=start_date,
        end_date=end_date,
        disciplines=discipline,
        types=types,
    )
    if favorites:
        session = open_session(authorization)
        filters.tournament_ids = set(catalog.favourite_ids(session.db, session.identity.user_id))
    return catalog.list_tournaments(db, filters)


@app.post("/tournaments/submit")
def submit_tournament(body: TournamentProposal, session: Session = Depends(get_session)):
    staged = moderation.submit(session.db, session.identity, body)
    return {
        "success": True,
        "message": "Tournament submitted successfully! It will be reviewed before being published.",
        "id": staged.get("id"),
    }


@app.get("/tournaments/staged")
def list_staged(
    include_resolved: bool = Query(False, alias="includeResolved"),
    session: Session = Depends(get_session),
) -> List[dict]:
    return moderation.list_staged(session.db, session.identity, include_resolved)


@app.post("/tournaments/approve")
def approve_tournament(body: ApproveRequest, session: Session = Depends(get_session)):
    result = moderation.approve(session.db, session.identity, body.tournament_id)
    message = "Tournament approved successfully"
    if result.warnings:
        message = "Tournament approved with warnings"
    return {
        "success": True,
        "message": message,
        "tournamentId": result.tournament_id,
        "warnings": result.warnings,
    }


@app.get("/tournaments/{tournament_id}")
def get_tournament(tournament_id: str, db: Database = Depends(get_public_db)):
    return catalog.get_tournament(db, parse_id(tournament_id))


@app.patch("/tournaments/{tournament_id}")
def update_tournament(tournament_id: str, body: TournamentPatch, session: Session = Depends(get_session)):
    return catalog.patch_tournament(session.db, session.identity, parse_id(tournament_id), body)


@app.get("/tournaments/{tournament_id}/updates")
def list_updates(tournament_id: str, db: Database = Depends(get_public_db)) -> List[dict]:
    return catalog.list_updates(db, parse_id(tournament_id))


@app.post("/tournaments/{tournament_id}/updates")
def create_update(tournament_id: str, body: UpdateRequest, session: Session = Depends(get_session)):
    update = catalog.append_update(session.db, session.identity, parse_id(tournament_id), body.message)
    return {"success": True, "update": update}


# User

@app.get("/user/favorites")
def get_favorites(session: Session = Depends(get_session)):
    ids = catalog.favourite_ids(session.db, session.identity.user_id)
    return {"success": True, "favouriteTournamentIds": ids}


@app.post("/user/favorites")
def toggle_favorite(body: FavouriteRequest, session: Session = Depends(get_session)):
    ids = catalog.toggle_favourite(session.db, session.identity, body.tournament_id, body.action)
    verb = "added to" if body.action == "add" else "removed from"
    return {
        "success": True,
        "message": f"Tournament {body.tournament_id} {verb} favorites.",
        "favouriteTournamentIds": ids,
    }


@app.get("/user/owned-tournaments")
def get_owned_tournaments(session: Session = Depends(get_session)):
    ids = catalog.owned_tournament_ids(session.db, session.identity.user_id)
    return {"success": True, "ownedTournamentIds": ids}


# Auth pass-through

@app.post("/login")
def login(body: Credentials, db: Database = Depends(get_public_db)):
    result = db.sign_in(body.email, body.password)
    if not result["token"]:
        raise HTTPException(status_code=401, detail="Login failed")
    logger.info("Login succeeded for %s", result["identity"])
    return {"success": True, "message": "Login successful!", **result}


@app.post("/signup")
def signup(body: Credentials, db: Database = Depends(get_public_db)):
    if len(body.password) < MIN_PASSWORD_LENGTH:
        raise HTTPException(status_code=400, detail=f"Password must be at least {MIN_PASSWORD_LENGTH} characters.")
    result = db.sign_up(body.email, body.password)
    if not result["token"]:
        return {
            "success": True,
            "message": "Registration successful! Please check your email to confirm your account.",
            "requiresConfirmation": True,
        }
    return {
        "success": True,
        "message": "Registration successful!",
        "requiresConfirmation": False,
        **result,
    }


# Storage

@app.post("/upload-logo")
def upload_logo(file: Optional[UploadFile] = File(None), session: Session = Depends(get_session)):
    bucket = config.require("LOGOS_BUCKET", public_message="Storage configuration error")["LOGOS_BUCKET"]
    if file is None or not file.filename:
        raise HTTPException(status_code=400, detail="No file provided")

    filename = file.filename.lower()
    if not filename.endswith(LOGO_EXTENSIONS) or file.content_type not in LOGO_CONTENT_TYPES:
        raise HTTPException(status_code=400, detail="Invalid file type. Only JPEG and PNG images are allowed.")

    extension = ".png" if filename.endswith(".png") else ".jpg"
    name = f"logo_{int(time.time() * 1000)}_{secrets.token_hex(3)}{extension}"
    url = session.db.upload_object(bucket, name, file.file.read(), file.content_type)
    logger.info("Logo uploaded by %s: %s", session.identity.user_id, name)
    return {"success": True, "url": url, "fileName": name}


if __name__ == "__main__":
    import uvicorn
    port = int(os.getenv("PORT", 8000))
    uvicorn.run(app, host="0.0.0.0", port=port)
