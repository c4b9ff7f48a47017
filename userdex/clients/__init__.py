from .randomuser import RandomUserClient, RemoteDirectoryError, RemoteDirectorySource

__all__ = ["RandomUserClient", "RemoteDirectoryError", "RemoteDirectorySource"]
