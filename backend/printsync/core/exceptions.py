"""Exceptions raised by the sync pass and its collaborators."""


class PrintSyncError(Exception):
    """Base class for PrintSync errors."""


class CollaboratorError(PrintSyncError):
    """A remote service the pass depends on failed or answered unexpectedly."""

    def __init__(self, message: str, status: int | None = None, body=None):
        super().__init__(message)
        self.status = status
        self.body = body


class RosterFetchError(CollaboratorError):
    """The central service could not supply the printer roster."""


class SyncPushError(CollaboratorError):
    """The local service rejected or did not receive the resolved printers."""


class SyncTimeoutError(PrintSyncError):
    """A pass exceeded MAX_EXECUTION_TIME."""


class SyncInProgressError(PrintSyncError):
    """A pass was requested while another one is running."""
