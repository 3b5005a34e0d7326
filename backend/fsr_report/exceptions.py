"""Exception hierarchy for report generation.

Callers catch ReportError to handle every failure raised by the report
pipeline; the subclasses tell the HTTP layer how to respond.
"""


class ReportError(Exception):
    """Base exception for all report generation errors."""
    pass


class ValidationError(ReportError):
    """Raised when the request is missing a required field or has the wrong shape.

    Raised before any drawing happens.
    """
    pass


class RenderFailure(ReportError):
    """Raised when drawing or serializing the PDF fails.

    The underlying error is chained as __cause__.
    """
    pass


class ResourceFailure(ReportError):
    """Raised when an external resource is unavailable or unusable.

    Covers undecodable images and unreachable object storage.
    """
    pass
