"""Error taxonomy.

None of these cross the core's public boundary: services catch them and turn
them into cached `Failed` values or logged no-ops.
"""

from __future__ import annotations


class LongURLError(Exception):
    """Base class for every error raised inside the expander."""


class TransportError(LongURLError):
    """The HTTP transport could not produce a JSON payload."""


class RegistryFetchError(LongURLError):
    """The service list could not be fetched or was malformed."""


class ResolutionFetchError(LongURLError):
    """A short URL could not be resolved (network or parse failure)."""


class RemoteApiError(LongURLError):
    """The remote service answered but reported a semantic error."""


class MalformedLinkError(LongURLError):
    """A link's href has no parseable host."""
