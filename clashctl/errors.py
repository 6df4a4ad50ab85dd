"""Exceptions raised by the Clash client and the interactive front end."""

from __future__ import annotations

from os import PathLike


class ClashError(Exception):
    """Base class for errors raised while talking to a Clash controller."""


class UrlParseError(ClashError):
    """The controller URL could not be parsed."""

    def __init__(self) -> None:
        super().__init__("Invalid URL format")


class RequestError(ClashError):
    """The HTTP request itself failed."""

    def __init__(self, cause: object) -> None:
        self.cause = cause
        super().__init__(f"Error while requesting API ({cause})")


class BadResponseEncoding(ClashError):
    """The response body could not be decoded as text."""

    def __init__(self) -> None:
        super().__init__("Broken response from server")


class BadResponseFormat(ClashError):
    """The response body did not have the expected structure."""

    def __init__(self, cause: object) -> None:
        self.cause = cause
        super().__init__(f"Broken response from server ({cause})")


class FailedResponse(ClashError):
    """The server answered with an HTTP status of 400 or above."""

    def __init__(self, status: int) -> None:
        self.status = status
        super().__init__(f"Failed response from server (Code {status})")


class OtherError(ClashError):
    """Any other failure, carrying a free-form message."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(f"Other errors ({message})")


class InteractiveError(Exception):
    """Base class for errors of the command-line front end."""


class ServerNotFound(InteractiveError):
    """No configured server matches the requested one."""

    def __init__(self) -> None:
        super().__init__("Cannot find server")


class ConfigFileTypeError(InteractiveError):
    """The configured config directory is not a directory."""

    def __init__(self, path: str | PathLike[str]) -> None:
        self.path = path
        super().__init__(f"{path} is not a directory")


class ConfigFileOpenError(InteractiveError):
    """No location for the config file could be determined."""

    def __init__(self) -> None:
        super().__init__("Config file cannot be found")


class ConfigFileIoError(InteractiveError):
    """Reading or writing the config file failed."""

    def __init__(self, cause: object) -> None:
        self.cause = cause
        super().__init__(f"Config file IO error ({cause})")


class ConfigFileFormatError(InteractiveError):
    """The config file could not be parsed."""

    def __init__(self, cause: object) -> None:
        self.cause = cause
        super().__init__(f"Config file cannot be parsed ({cause})")


class ConfigFileGenerateError(InteractiveError):
    """The config data could not be serialised."""

    def __init__(self, cause: object) -> None:
        self.cause = cause
        super().__init__(f"Config file cannot be generated ({cause})")