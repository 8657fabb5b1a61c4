"""
Drive River - incrementally mirror a Google Drive folder into an index.

Watches one top-level folder (and everything below it) through the Drive
change feed and hands every relevant change to an index sink.

Import from submodules directly:
    from driveriver.config import RiverSettings
    from driveriver.drive import DriveClient, ChangePoller, FolderScopeResolver
    from driveriver.river import DriveRiver
    from driveriver.sink import DirectorySink
"""

__version__ = "0.1.0"
