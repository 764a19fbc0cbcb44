class QRGateError(Exception):
    """Base class for errors raised by the gate and the QR pipeline."""


class GateServiceError(QRGateError):
    """The identity service could not be reached or answered unexpectedly."""


class EncodingError(QRGateError, ValueError):
    """The payload cannot be represented as a QR code with the given config."""


class DownloadEnvironmentError(QRGateError, RuntimeError):
    """A download was triggered without a document surface to attach to."""
