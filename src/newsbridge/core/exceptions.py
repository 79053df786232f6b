"""newsbridge exception hierarchy.

Typed exceptions let the connector tell apart the failure classes it treats
differently: fatal at boot, fatal to one city's pass, and local to one
article. ``CancelledError`` is never wrapped and always propagates.

Exception hierarchy:

```text
NewsBridgeError (base -- never raised directly)
├── ConfigurationError       -- invalid YAML, missing keys, bad values
├── LedgerError              -- Redis failures on connect, mark, or clear
├── SourceQueryError         -- Elasticsearch transport or error response
├── PublishError             -- Drupal rejected or garbled a creation request
└── ThrottleCancelledError   -- shutdown requested while waiting for a token
```

See Also:
    [Connector][newsbridge.services.connector.Connector]: Decides per
        exception class whether to skip an article, abandon a city, or keep
        going.
    [DuplicateLedger][newsbridge.core.ledger.DuplicateLedger]: Raises
        [LedgerError][newsbridge.core.exceptions.LedgerError].
"""

from __future__ import annotations


class NewsBridgeError(Exception):
    """Base exception for all newsbridge errors.

    Never raised directly -- always use a specific subclass.
    """


class ConfigurationError(NewsBridgeError):
    """Invalid or missing configuration (YAML, env vars, CLI flags).

    Raised before the service loop starts; the CLI exits with status 1.
    """


class LedgerError(NewsBridgeError):
    """The duplicate ledger's Redis backend failed.

    Raised by ``connect()`` (fatal at boot), ``mark_seen()`` and ``clear()``.
    Existence checks never raise it; they fail open instead.
    """


class SourceQueryError(NewsBridgeError):
    """Searching a city's Elasticsearch index failed.

    Covers transport errors, non-2xx responses, and undecodable bodies.
    Ends the current city's pass; other cities are unaffected.
    """

    def __init__(self, message: str, *, index: str | None = None, status: int | None = None):
        super().__init__(message)
        self.index = index
        self.status = status


class PublishError(NewsBridgeError):
    """Drupal refused a node creation or returned an unusable response.

    Local to a single article: the connector counts it as failed and moves on.
    """

    def __init__(self, message: str, *, status: int | None = None):
        super().__init__(message)
        self.status = status


class ThrottleCancelledError(NewsBridgeError):
    """Shutdown was requested while waiting on the delivery throttle.

    Ends the current city's pass; the caller must not treat it as retryable.
    """
