"""
Service-level exceptions

Handlers translate these into HTTP responses; services never build responses.
"""


class ProductReportError(Exception):
    """Base class for errors raised by services and connectors"""


class ConfigurationError(ProductReportError):
    """A required setting (usually an API key) is missing"""


class ExternalServiceError(ProductReportError):
    """A third-party API answered with an error or could not be reached"""

    def __init__(self, service: str, message: str, status_code: int = None):
        self.service = service
        self.status_code = status_code
        super().__init__(f"{service}: {message}")


class CircuitOpenError(ProductReportError):
    """Calls to a failing dependency are temporarily refused"""
