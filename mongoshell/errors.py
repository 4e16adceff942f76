class ShellError(ValueError):
    """Base class for errors reported back to the shell transcript."""


class UnsupportedCommandError(ShellError):
    pass


class ShellSyntaxError(ShellError):
    """Unbalanced delimiters, missing arguments or arguments of the wrong shape."""


class LiteralParseError(ShellError):
    def __init__(self, message: str, position: int = None):
        if position is not None:
            message = f"{message} (at position {position})"
        super().__init__(message)
        self.position = position
