class WigleExplorerError(Exception):
    """
    Base class for all package errors.
    """
    pass


class SourceError(WigleExplorerError):
    """
    The query source could not be opened or queried. Fails the whole load.
    """
    pass
