"""Expose constructed client wrappers."""

from .credential_store import CredentialStore, RecordCredentialStore
from .dynamodb import DynamoDBClient
from .errors import StoreUnavailableError
from .hubspot import HubSpotClient, HubSpotError
from .oauth import OAuthClient, OAuthStateEncoder, OAuthTokenExchangeError
from .outlook import CalendarError, OutlookCalendarClient
from .recaptcha import RecaptchaClient
from .sqlite_store import SQLiteStore

__all__ = [
    "CalendarError",
    "CredentialStore",
    "DynamoDBClient",
    "HubSpotClient",
    "HubSpotError",
    "OAuthClient",
    "OAuthStateEncoder",
    "OAuthTokenExchangeError",
    "OutlookCalendarClient",
    "RecaptchaClient",
    "RecordCredentialStore",
    "SQLiteStore",
    "StoreUnavailableError",
]
