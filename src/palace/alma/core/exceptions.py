from typing import Any


class BasePalaceException(Exception):
    """Base class for every exception we raise.

    Subclasses may add attributes freely: pickling carries the whole
    instance `__dict__` along with `args`.
    """

    def __init__(self, message: str | None = None):
        super().__init__(message)
        self.message = message

    def __getstate__(self) -> dict[str, Any]:
        return {"dict": self.__dict__, "args": self.args}

    def __setstate__(self, state: dict[str, Any] | None) -> None:
        # Only ever called with what __getstate__ returned, but
        # BaseException.__setstate__ allows None.
        assert state is not None
        self.__dict__.update(state["dict"])
        self.args = state["args"]

    def __reduce__(self) -> tuple[Any, ...]:
        # Rebuild without calling __init__, whose signature varies by subclass.
        return self.__class__.__new__, (self.__class__,), self.__getstate__()


class PalaceValueError(BasePalaceException, ValueError): ...


class IntegrationException(BasePalaceException):
    """Something is wrong with our connection to Alma.

    Either we couldn't talk to it (RemoteIntegrationException), it told us
    something we couldn't understand (MalformedDocumentError), or our own
    settings are unusable (CannotLoadConfiguration).
    """

    def __init__(self, message: str | None, debug_message: str | None = None) -> None:
        """
        :param message: A short description of what went wrong.
        :param debug_message: More detail for whoever is running the
            integration, such as the body of a bad response.
        """
        super().__init__(message)
        self.debug_message = debug_message
