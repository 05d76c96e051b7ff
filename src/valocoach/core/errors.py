"""Exception types raised across valocoach."""


class ValorantAPIError(Exception):
    """The game-statistics API could not be used or reported a failure."""

    def __init__(self, message: str, status_code: int | None = None, body: str | None = None):
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class AimlabAPIError(Exception):
    """The Aim Lab GraphQL endpoint returned an HTTP or GraphQL error."""


class MatchDataError(ValueError):
    """A match payload is missing data the pipeline needs."""

    def __init__(self, message: str, missing: list[str] | None = None):
        super().__init__(message)
        self.missing = missing or []