"""Exception types raised by Stheno.

Every error the engine raises derives from SthenoError so callers can catch
build failures as one family. Errors carry the offending path or identifier
so the CLI can point the user at the file that broke the build.
"""

from __future__ import annotations

from pathlib import Path


class SthenoError(Exception):
    """Base class for all Stheno errors."""


class ConfigurationError(SthenoError, ValueError):
    """Invalid configuration detected before any I/O happens."""


class DestinationConflictError(ConfigurationError):
    """Two or more items would be written to the same destination file.

    Attributes:
        destination: The contested output path.
        sources: Source identifiers of every item claiming it.
    """

    def __init__(self, destination: Path, sources: list[str]):
        self.destination = destination
        self.sources = sources
        joined = ", ".join(sources)
        super().__init__(
            f"Destination {destination} is written by more than one item: {joined}"
        )


class ConverterNotFoundError(SthenoError, LookupError):
    """No converter instance exists for a requested class."""


class ConverterConflictError(SthenoError, LookupError):
    """Several converters claim an extension with the same top priority."""


class CrossReferenceError(SthenoError, LookupError):
    """A document references another document that does not exist.

    Attributes:
        target: The path that could not be resolved.
        source_path: Source file containing the reference, when known.
    """

    def __init__(self, target: str, source_path: Path | None = None):
        self.target = target
        self.source_path = source_path
        super().__init__(
            f"Could not find document '{target}' in tag 'link'. "
            "Make sure the document exists and the path is correct."
        )


class ReaderError(SthenoError):
    """A source file could not be read or parsed.

    Attributes:
        source_path: Path to the unreadable file.
    """

    def __init__(self, source_path: Path, message: str):
        self.source_path = source_path
        super().__init__(f"{source_path}: {message}")


class TemplateError(SthenoError):
    """Template evaluation failed.

    Attributes:
        source_path: File the template came from, when known.
        lineno: Line of the failure, when known.
    """

    def __init__(self, message: str, source_path: Path | None = None, lineno: int | None = None):
        self.source_path = source_path
        self.lineno = lineno
        location = ""
        if source_path is not None:
            location = f"{source_path}"
            if lineno is not None:
                location += f":{lineno}"
            location += ": "
        super().__init__(f"{location}{message}")


class GeneratorError(SthenoError):
    """A generator plugin failed; the build stops before rendering.

    Attributes:
        generator: Name of the generator class that failed.
    """

    def __init__(self, generator: str, original_error: Exception):
        self.generator = generator
        self.original_error = original_error
        super().__init__(f"{generator} failed: {original_error}")
