"""Exception hierarchy shared by the core and adapters."""

from __future__ import annotations


class WhoisWatchError(Exception):
    """Base class for every error raised on purpose by whoiswatch."""


class ValidationError(WhoisWatchError):
    """A domain name or other input was rejected before reaching the engine."""


class FetchError(WhoisWatchError):
    """The WHOIS provider failed or timed out for one domain."""


class PersistError(WhoisWatchError):
    """The store could not persist the reconciled state of one domain."""


class NotificationError(WhoisWatchError):
    """Delivery of one notification to one recipient failed."""


class StoreUnavailableError(WhoisWatchError):
    """The store cannot be used at all (e.g. tracked domains cannot be listed)."""


class DomainNotFoundError(WhoisWatchError):
    """The domain is not tracked by anyone."""


class AlreadyWatchingError(WhoisWatchError):
    """The user already watches the domain."""


class NotWatchingError(WhoisWatchError):
    """The user does not watch the domain."""
