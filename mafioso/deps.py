# FastAPI dependencies shared by the routers: store, config, clock, rng, auth and error mapping
import logging
import os
import random
from datetime import datetime, timedelta, timezone
from typing import Optional

from dotenv import load_dotenv
from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

from mafioso.cache import TTLCache
from mafioso.config import GameConfig, load_game_config
from mafioso.models import Player
from mafioso.results import ErrorKind, Resolution
from mafioso.storage import MongoGameStore, WriteConflict, create_store_from_env
from mafioso.timers import utc_now

logger = logging.getLogger(__name__)

ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_MINUTES = 60
JWT_SECRET_TTL_SEC = 300

_PLACEHOLDER_SECRETS = (
    "",
    "your-secret-key-change-in-production",
    "your-secret-key-here",
    "GENERATE_NEW_SECRET_HERE",
)

ERROR_STATUS = {
    ErrorKind.VALIDATION: 400,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.PRECONDITION_FAILED: 400,
    ErrorKind.CONFLICT: 409,
}

security = HTTPBearer()
secret_cache = TTLCache(JWT_SECRET_TTL_SEC)

_store: Optional[MongoGameStore] = None
_config: Optional[GameConfig] = None


def get_store() -> MongoGameStore:
    global _store
    if _store is None:
        _store = create_store_from_env()
    return _store


def get_game_config() -> GameConfig:
    global _config
    if _config is None:
        _config = load_game_config()
    return _config


def get_now() -> datetime:
    return utc_now()


def get_rng():
    return random


def _read_jwt_secret() -> Optional[str]:
    load_dotenv()
    secret = os.environ.get("JWT_SECRET_KEY", "").strip()
    if secret in _PLACEHOLDER_SECRETS:
        logger.error("JWT_SECRET_KEY must be set to a secure random value, not a placeholder.")
        return None
    return secret


def get_jwt_secret() -> str:
    secret = secret_cache.get_or_load("jwt_secret", _read_jwt_secret)
    if not secret:
        raise HTTPException(status_code=500, detail="Server authentication is not configured")
    return secret


def create_access_token(world_id: str, secret: Optional[str] = None) -> str:
    expire = datetime.now(timezone.utc) + timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES)
    return jwt.encode({"sub": world_id, "exp": expire}, secret or get_jwt_secret(), algorithm=ALGORITHM)


async def get_principal(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    secret: str = Depends(get_jwt_secret),
) -> str:
    try:
        payload = jwt.decode(credentials.credentials, secret, algorithms=[ALGORITHM])
        world_id: str = payload.get("sub")
        if world_id is None:
            raise HTTPException(status_code=401, detail="Invalid authentication credentials")
    except JWTError:
        raise HTTPException(status_code=401, detail="Invalid authentication credentials")
    return world_id


async def get_current_player(
    world_id: str = Depends(get_principal),
    store: MongoGameStore = Depends(get_store),
) -> Player:
    player = await store.load_player(world_id)
    if player is None:
        raise HTTPException(status_code=401, detail="Player not found")
    return player


def raise_for_error(resolution: Resolution) -> None:
    """Turn a tagged engine error into the HTTPException the player sees."""
    if resolution.error is None:
        return
    status = ERROR_STATUS.get(resolution.error.kind, 400)
    raise HTTPException(status_code=status, detail=resolution.error.reason)


async def persist(store: MongoGameStore, resolution: Resolution):
    """Raise for an error, otherwise write the changes and hand back the outcome."""
    raise_for_error(resolution)
    try:
        await store.apply(resolution.changes)
    except WriteConflict:
        raise HTTPException(status_code=409, detail="Something changed while you were acting. Please refresh and try again.")
    return resolution.outcome
