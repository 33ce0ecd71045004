"""
Errors raised before any network activity starts.

Per-URL failures are never raised; the fetcher turns them into result tokens.
"""


class BatchFetchError(Exception):
    """Base class for batchfetch errors."""


class InputError(BatchFetchError, ValueError):
    """The command-line input cannot be turned into a list of URLs."""


class NoURLsError(InputError):
    def __init__(self):
        super().__init__("No urls")


class InvalidURLError(InputError):
    def __init__(self, url: str, reason: str = ""):
        self.url = url
        self.reason = reason
        message = f"Invalid url: {url!r}"
        if reason:
            message = f"{message} ({reason})"
        super().__init__(message)
