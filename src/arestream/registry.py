r"""Contain the immutable registries used to select the response
stages.

A registry maps a string key (a content-encoding token, an exact media
type or a charset name) to a factory creating a fresh ``Stage``. A
missing key means the stage is not included in the pipeline.
"""

from __future__ import annotations

__all__ = [
    "DEFAULT_REGISTRIES",
    "CharsetRegistry",
    "StageRegistries",
    "StageRegistry",
    "default_decompressors",
    "default_parsers",
]

import codecs
import functools
from collections.abc import Callable, Iterator, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType

from arestream.stages import (
    CharsetDecodeStage,
    DeflateStage,
    GzipStage,
    JsonParseStage,
    Stage,
    XmlParseStage,
)

StageFactory = Callable[..., Stage]


class StageRegistry(Mapping):
    r"""Read-only mapping from a key to a stage factory.

    Args:
        factories: The initial mapping. It is copied.

    Example:
        ```pycon
        >>> from arestream.registry import StageRegistry
        >>> from arestream.stages import GzipStage
        >>> registry = StageRegistry({"gzip": GzipStage})
        >>> registry.lookup("gzip")
        <class 'arestream.stages.GzipStage'>
        >>> registry.lookup("br")

        ```
    """

    def __init__(self, factories: Mapping[str, StageFactory] | None = None) -> None:
        self._factories = MappingProxyType(dict(factories or {}))

    def __getitem__(self, key: str) -> StageFactory:
        return self._factories[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._factories)

    def __len__(self) -> int:
        return len(self._factories)

    def __repr__(self) -> str:
        return f"{self.__class__.__qualname__}({sorted(self._factories)})"

    def lookup(self, key: str | None) -> StageFactory | None:
        r"""Return the factory registered for ``key``, or ``None``."""
        if key is None:
            return None
        return self._factories.get(key)

    def extend(self, factories: Mapping[str, StageFactory]) -> StageRegistry:
        r"""Return a new registry with extra or replaced entries.

        The current registry is left unchanged.
        """
        return self.__class__({**self._factories, **factories})


class CharsetRegistry(StageRegistry):
    r"""Registry of charset decoding stages.

    Explicit entries take precedence. Any other charset known to the
    ``codecs`` module resolves to a ``CharsetDecodeStage``.
    """

    def lookup(self, key: str | None) -> StageFactory | None:
        factory = super().lookup(key)
        if factory is not None or key is None:
            return factory
        try:
            codecs.lookup(key)
        except LookupError:
            return None
        return functools.partial(CharsetDecodeStage, key)


def default_decompressors() -> StageRegistry:
    return StageRegistry(
        {
            "gzip": GzipStage,
            "x-gzip": GzipStage,
            "deflate": DeflateStage,
            "x-deflate": DeflateStage,
        }
    )


def default_parsers() -> StageRegistry:
    return StageRegistry(
        {
            "application/json": JsonParseStage,
            "application/xml": XmlParseStage,
            "text/xml": XmlParseStage,
        }
    )


@dataclass(frozen=True)
class StageRegistries:
    r"""Group of the three registries injected into the orchestrator.

    Args:
        decompressors: Content-encoding token to decompression stage.
        parsers: Exact media type to parsing stage.
        decoders: Charset name to decoding stage.
    """

    decompressors: StageRegistry = field(default_factory=default_decompressors)
    parsers: StageRegistry = field(default_factory=default_parsers)
    decoders: StageRegistry = field(default_factory=CharsetRegistry)


DEFAULT_REGISTRIES = StageRegistries()
