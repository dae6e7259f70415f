"""Exception hierarchy for mtopo."""


class MTopoError(Exception):
    """Base exception for topology discovery errors."""

    pass


class NodeConnectionError(MTopoError):
    """Raised when a direct connection to a discovered node cannot be opened."""

    def __init__(self, host: str, message: str) -> None:
        super().__init__(f"could not connect to {host}: {message}")
        self.host = host


class MalformedShardHostError(MTopoError, ValueError):
    """Raised when a shard host string is not of the form ``setName/h1,h2``."""

    def __init__(self, value: str, reason: str) -> None:
        super().__init__(f"malformed shard host {value!r}: {reason}")
        self.value = value
