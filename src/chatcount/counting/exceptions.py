class CountError(Exception):
    """Input error that is reported back to the user as text."""


class GroupNotFoundError(CountError):
    pass


class EmptyResultError(CountError):
    pass


class InvalidWordError(CountError):
    pass


class CommandUsageError(CountError):
    pass
