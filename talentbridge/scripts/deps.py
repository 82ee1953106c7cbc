"""FastAPI dependencies wiring storage, resolver and matcher per request."""
from fastapi import Depends

from .config import MatchSettings, match_settings
from .db import get_db, read_settings
from .matcher import CandidateMatcher
from .resolver import IdentifierResolver


def get_database():
    return get_db()


def get_resolver(db=Depends(get_database)) -> IdentifierResolver:
    return IdentifierResolver(db)


def get_match_settings(db=Depends(get_database)) -> MatchSettings:
    """Env defaults overridden by operator settings stored in Mongo."""
    return match_settings(read_settings(db, ["maximum_distance", "strict_radius"]))


def get_matcher(
    resolver: IdentifierResolver = Depends(get_resolver),
    settings: MatchSettings = Depends(get_match_settings),
) -> CandidateMatcher:
    return CandidateMatcher(resolver, settings)
