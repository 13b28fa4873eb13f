"""Exceptions raised by the proportion testing pipeline.

All errors derive from :class:`PropellerError`, itself a ``ValueError`` so
callers that already guard against bad input with ``except ValueError``
keep working.
"""


class PropellerError(ValueError):
    """Base class for fatal proportion-testing errors."""

    pass


class MissingInputError(PropellerError):
    """Raised when no cluster/sample/group label source is provided."""

    pass


class LabelShapeError(PropellerError):
    """Raised when label vectors are empty, misaligned or contain missing values."""

    pass


class TransformConfigError(PropellerError):
    """Raised for an unknown proportion transform."""

    pass


class DesignConfigError(PropellerError):
    """Raised when the design, contrast or coefficient selection is unusable."""

    pass


class SampleGroupConflictError(DesignConfigError):
    """Raised when one sample is observed under more than one group."""

    pass


class MissingColumnError(MissingInputError):
    """Raised when a metadata column cannot be found on a label source."""

    pass


class AmbiguousColumnError(PropellerError):
    """Raised when a metadata key matches several columns case-insensitively."""

    pass


class UnsupportedSourceError(PropellerError):
    """Raised when labels cannot be extracted from the given object."""

    pass
