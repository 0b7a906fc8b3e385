"""Integration shortcuts."""

from .dms import (
    BookedRepair,
    Booking,
    CredentialProvider,
    CredentialResult,
    DiaryFetcher,
    DiaryResponse,
    DmsCredentials,
    load_diary_fetcher,
)

__all__ = [
    "BookedRepair",
    "Booking",
    "CredentialProvider",
    "CredentialResult",
    "DiaryFetcher",
    "DiaryResponse",
    "DmsCredentials",
    "load_diary_fetcher",
]
