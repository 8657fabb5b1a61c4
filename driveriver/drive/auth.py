"""
OAuth credentials for Drive River.

Exchanges a configured refresh token (client id + secret + refresh token)
for an access token, or falls back to a saved token.json / interactive
consent flow for local use.
"""

import logging
from pathlib import Path
from typing import Optional

from google.auth import exceptions as google_exceptions
from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials
from google_auth_oauthlib.flow import InstalledAppFlow

from ..exceptions import AuthError, TransportError

logger = logging.getLogger(__name__)

TOKEN_URI = "https://oauth2.googleapis.com/token"


class OAuthManager:
    """
    Manages OAuth 2.0 credentials for Google Drive.

    Credential sources, in order:
    - refresh_token + client_id + client_secret passed in (river settings)
    - token_path, a token saved by a previous interactive run
    - credentials_path, a desktop-app client secrets file (opens a browser)
    """

    SCOPES = ["https://www.googleapis.com/auth/drive.readonly"]

    def __init__(
        self,
        client_id: str = "",
        client_secret: str = "",
        refresh_token: str = "",
        credentials_path: Optional[Path] = None,
        token_path: Optional[Path] = None,
    ):
        self.client_id = client_id
        self.client_secret = client_secret
        self.refresh_token = refresh_token
        self.credentials_path = credentials_path or Path("credentials.json")
        self.token_path = token_path or Path("token.json")
        self._credentials: Optional[Credentials] = None

    @property
    def has_refresh_token(self) -> bool:
        """Check if a refresh token triple was configured."""
        return bool(self.refresh_token and self.client_id and self.client_secret)

    @property
    def is_configured(self) -> bool:
        """Check if any credential source is available."""
        return self.has_refresh_token or self.credentials_path.exists() or self.token_path.exists()

    def _from_refresh_token(self) -> Credentials:
        return Credentials(
            token=None,
            refresh_token=self.refresh_token,
            client_id=self.client_id,
            client_secret=self.client_secret,
            token_uri=TOKEN_URI,
            scopes=self.SCOPES,
        )

    def _load_saved(self) -> Optional[Credentials]:
        if not self.token_path.exists():
            return None
        try:
            return Credentials.from_authorized_user_file(str(self.token_path), self.SCOPES)
        except (ValueError, OSError) as e:
            logger.warning("Ignoring unreadable token file %s: %s", self.token_path, e)
            return None

    def _run_consent_flow(self) -> Credentials:
        flow = InstalledAppFlow.from_client_secrets_file(str(self.credentials_path), self.SCOPES)
        return flow.run_local_server(port=0)

    def _save_token(self, creds: Credentials):
        """Save credentials to token file."""
        try:
            self.token_path.write_text(creds.to_json())
        except OSError as e:
            logger.warning("Could not save token to %s: %s", self.token_path, e)

    def get_credentials(self) -> Credentials:
        """
        Get valid credentials, refreshing them if needed.

        Raises:
            AuthError: no credential source, or the token exchange was rejected
            TransportError: the token endpoint could not be reached
        """
        creds = self._credentials
        if creds is None:
            if self.has_refresh_token:
                creds = self._from_refresh_token()
            else:
                creds = self._load_saved()

        changed = False
        if creds is not None and not creds.valid and creds.refresh_token:
            try:
                creds.refresh(Request())
            except google_exceptions.TransportError as e:
                logger.warning("Could not reach the Google token endpoint: %s", e)
                raise TransportError(f"Token refresh failed: {e}") from e
            except google_exceptions.GoogleAuthError as e:
                logger.error("Could not refresh Google Drive token: %s", e)
                raise AuthError(f"Token refresh failed: {e}") from e
            changed = True

        if (creds is None or not creds.valid) and not self.has_refresh_token:
            if not self.credentials_path.exists():
                raise AuthError("No Google Drive credentials configured")
            creds = self._run_consent_flow()
            changed = True

        # Configured secrets are never written out
        if changed and not self.has_refresh_token:
            self._save_token(creds)

        if creds is None or not creds.valid:
            raise AuthError("Could not obtain valid Google Drive credentials")

        self._credentials = creds
        return creds

    def get_token(self) -> str:
        """Get the current access token string."""
        return self.get_credentials().token

    def invalidate(self):
        """Forget cached credentials so the next call refreshes them."""
        self._credentials = None
