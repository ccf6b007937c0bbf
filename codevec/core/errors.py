"""Error types raised by the code search core."""


class CodeIndexError(Exception):
    """Base error for code index operations."""

    pass


class InvalidProjectNameError(CodeIndexError):
    """Project name contains characters outside [A-Za-z0-9_]."""

    def __init__(self, name: object) -> None:
        super().__init__(
            f"Invalid project name {name!r}: only letters, digits and underscores are allowed"
        )
        self.name = name


class ProjectNotFoundError(CodeIndexError):
    """Project namespace does not exist."""

    def __init__(self, name: str) -> None:
        super().__init__(f"Project {name} not found")
        self.name = name


class EmptyIndexError(CodeIndexError):
    """Nearest-neighbour query against zero stored vectors."""

    def __init__(self, name: str = None) -> None:
        if name is None:
            message = "Spatial index holds no points"
        else:
            message = f"Project {name} has no embedded code blocks"
        super().__init__(message)
        self.name = name


class EmbeddingError(CodeIndexError):
    """Embedding capability failed or returned a malformed vector."""

    pass


class StorageError(CodeIndexError):
    """Backing store reported an error or returned a corrupt row."""

    pass


class IndexingError(CodeIndexError):
    """Code indexer could not read the project source tree."""

    def __init__(self, path: str, reason: str) -> None:
        super().__init__(f"Cannot index {path}: {reason}")
        self.path = path
        self.reason = reason


class DimensionMismatchError(CodeIndexError, ValueError):
    """Vector length does not match the expected dimension."""

    def __init__(self, expected: int, actual: int) -> None:
        super().__init__(f"Vector dimension {actual} does not match expected dimension {expected}")
        self.expected = expected
        self.actual = actual
