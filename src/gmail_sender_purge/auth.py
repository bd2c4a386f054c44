"""Authentication helpers for Gmail API."""

from __future__ import annotations

from pathlib import Path

from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials
from google_auth_oauthlib.flow import InstalledAppFlow
from googleapiclient.discovery import build, Resource

from .constants import CREDENTIALS_PATH, SCOPES, TOKEN_PATH


def get_gmail_service(
    credentials_path: Path | None = None,
    token_path: Path | None = None,
    scopes: list[str] | None = None,
) -> Resource:
    """Return an authenticated Gmail API service object.

    Loads the cached token from ``token_path`` if available.  When the token
    is expired it is silently refreshed.  If no token exists, an OAuth
    browser flow is launched (requires the client secrets file at
    ``credentials_path``).
    """
    credentials_path = Path(credentials_path or CREDENTIALS_PATH)
    token_path = Path(token_path or TOKEN_PATH)
    scopes = scopes or SCOPES
    token_path.parent.mkdir(parents=True, exist_ok=True)

    creds: Credentials | None = None

    if token_path.exists():
        creds = Credentials.from_authorized_user_file(str(token_path), scopes)

    if creds and creds.expired and creds.refresh_token:
        creds.refresh(Request())
    elif not creds or not creds.valid:
        if not credentials_path.exists():
            raise FileNotFoundError(
                f"Credentials file not found at {credentials_path}.\n"
                "Download your OAuth client credentials from the Google Cloud Console "
                "and save them as:\n"
                f"  {credentials_path}"
            )
        flow = InstalledAppFlow.from_client_secrets_file(str(credentials_path), scopes)
        creds = flow.run_local_server(port=0)

    token_path.write_text(creds.to_json())

    return build("gmail", "v1", credentials=creds)


def check_auth(credentials_path: Path | None = None, token_path: Path | None = None) -> bool:
    """Test whether Gmail authentication is working.

    Returns True when the service can reach the Gmail API, False otherwise.
    Prints human-readable status messages.
    """
    try:
        service = get_gmail_service(credentials_path, token_path)
        profile = service.users().getProfile(userId="me").execute()
        print(f"Authenticated as {profile['emailAddress']}")
        return True
    except Exception as exc:  # noqa: BLE001
        print(f"Authentication failed: {exc}")
        return False
