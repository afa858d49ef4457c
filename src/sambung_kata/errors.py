"""Exceptions raised by the oracle transport."""


class OracleUnavailable(RuntimeError):
    """The oracle could not be reached or kept failing after retries."""
