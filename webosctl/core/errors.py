"""Domain-specific errors for webosctl."""


class WebosctlError(Exception):
    """Base error for webosctl."""


class InvalidAddressError(WebosctlError):
    """Raised when a hardware (MAC) address is malformed."""


class CredentialStoreError(WebosctlError):
    """Raised when the persisted device file cannot be read, validated or written."""


class TransportError(WebosctlError):
    """Base transport error."""


class TransportConnectError(TransportError):
    """Raised on a single failed websocket connect attempt."""


class TransportSendError(TransportError):
    """Raised when writing a frame to the transport fails."""


class ResponseTimeoutError(TransportError):
    """Raised when a correlated response does not arrive in time."""


class ConnectionFailedError(WebosctlError):
    """Raised when every connect attempt has been exhausted."""


class NotConnectedError(WebosctlError):
    """Raised when a command is issued without an open transport."""


class ProtocolError(WebosctlError):
    """Raised when the TV reports an error for a request."""


class ListenerFailureError(WebosctlError):
    """Raised when the inbound listener loses the transport."""


class CommandArgumentError(WebosctlError):
    """Base error for rejected command arguments."""


class OutOfRangeError(CommandArgumentError):
    """Raised when a numeric argument is outside its allowed interval."""


class InvalidURLError(CommandArgumentError):
    """Raised when a URL does not use the http or https scheme."""


class MissingArgumentError(CommandArgumentError):
    """Raised when a required command argument is empty."""
