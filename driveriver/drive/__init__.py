"""
Google Drive interaction module.

Handles authentication, the API client, folder scope resolution and
change polling.
"""

from .auth import OAuthManager
from .changes import ChangePoller
from .client import DriveClient, DriveClientConfig
from .mime import DownloadTarget, fetch_content, resolve_download
from .scope import FolderScopeResolver, compute_scope

__all__ = [
    "OAuthManager",
    "ChangePoller",
    "DriveClient",
    "DriveClientConfig",
    "DownloadTarget",
    "fetch_content",
    "resolve_download",
    "FolderScopeResolver",
    "compute_scope",
]
