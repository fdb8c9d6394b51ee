"""Error taxonomy shared by the directory, intake, webhook and AI layers.

Every user action catches these at the boundary (API handler or CLI command)
and turns them into a transient message; none of them is fatal.
"""

from __future__ import annotations


class RecruiticaError(Exception):
    """Base class for all workflow errors."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(RecruiticaError):
    """Local, pre-network rejection of user input (e.g. bad file type)."""

    status_code = 422


class StoreError(RecruiticaError):
    """The data or file store refused an operation; message is surfaced verbatim."""

    status_code = 400

    def __init__(self, message: str, not_found: bool = False):
        super().__init__(message)
        self.not_found = not_found
        if not_found:
            self.status_code = 404


class DuplicateInListError(StoreError):
    """The client already has an entry (active or inactive) in the list."""

    status_code = 409


class NetworkError(RecruiticaError):
    """Transport failure or non-2xx reply from an outbound HTTP call."""

    status_code = 502

    def __init__(self, message: str, status: int | None = None):
        super().__init__(message)
        self.status = status


class TimedOut(RecruiticaError):
    """The draft webhook did not answer within its deadline.

    The workflow may still have accepted the job; only the wait was abandoned.
    """

    status_code = 504


class UnrecognizedResponseShape(RecruiticaError):
    """The draft webhook replied with an envelope none of the decoders accept."""

    status_code = 502


class AIProxyError(RecruiticaError):
    """The LLM gateway failed or returned a malformed completion."""

    status_code = 502

    def __init__(self, message: str, status: int | None = None):
        super().__init__(message)
        self.status = status
