import abc


class EmissionBackend(abc.ABC):
    """Lowers a transformed module into two generated source files.

    ``emit`` returns True on success. Returning False, raising
    :class:`~irpipe.passmanager.EmissionError` or raising ``OSError`` all
    count as failure.
    """

    name: str = ""

    @abc.abstractmethod
    def emit(self, module, primary_path: str, secondary_path: str) -> bool:
        ...
