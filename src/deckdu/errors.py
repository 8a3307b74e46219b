"""Error types raised by deckdu components."""


class DeckDuError(Exception):
    """Base class for fatal deckdu failures."""

    kind = "error"


class CacheDirError(DeckDuError):
    """The cache directory could not be created."""

    kind = "environment"


class FetchError(DeckDuError):
    """The application registry could not be reached."""

    kind = "fetch"


class DecodeError(DeckDuError):
    """The registry response body is not valid JSON."""

    kind = "decode"


class SchemaError(DeckDuError):
    """The registry response lacks the application list."""

    kind = "schema"


class CatalogUnavailable(DeckDuError):
    """The synchronized catalog could not be opened for resolution."""

    kind = "catalog_unavailable"


class ListingError(DeckDuError):
    """A data location or mount root could not be listed."""

    kind = "listing"


class SizeProbeError(DeckDuError):
    """A directory size could not be measured."""

    kind = "size_probe"
