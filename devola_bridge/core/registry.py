"""Registry of heater topic mappings.

Mappings are loaded once at startup from a line-oriented table of
``<input id> <output id>`` pairs and never change while the process runs.
Both identifiers index the same :class:`DeviceMapping` record, so the status
path (keyed by input id) and the command path (keyed by output id) observe
the same :class:`DeviceState`.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, Iterable, Iterator, List, Tuple

from ..errors import ConfigError, NotFoundError
from .models import DeviceMapping

LOGGER = logging.getLogger(__name__)

_FORBIDDEN_CHARACTERS = frozenset("/+#")


def parse_mapping_lines(lines: Iterable[str]) -> List[Tuple[str, str]]:
    """Parse mapping table lines into ``(input, output)`` pairs.

    Blank lines and lines starting with ``#`` are skipped. Any other line must
    hold exactly two whitespace-separated identifiers.
    """

    pairs: List[Tuple[str, str]] = []
    for number, line in enumerate(lines, start=1):
        stripped = line.strip()
        if not stripped or stripped.startswith("#"):
            continue
        tokens = stripped.split()
        if len(tokens) != 2:
            raise ConfigError(f"Badly formed mapping line {number}: {stripped!r}")
        pairs.append((tokens[0], tokens[1]))
    return pairs


class TopicRegistry:
    """Resolves heaters by device-side or normalized topic identifier."""

    def __init__(self) -> None:
        self._mappings: List[DeviceMapping] = []
        self._by_input: Dict[str, DeviceMapping] = {}
        self._by_output: Dict[str, DeviceMapping] = {}

    @classmethod
    def from_pairs(cls, pairs: Iterable[Tuple[str, str]]) -> "TopicRegistry":
        registry = cls()
        registry.load_from_pairs(pairs)
        return registry

    @classmethod
    def from_file(cls, path: Path) -> "TopicRegistry":
        registry = cls()
        registry.load_mapping_file(path)
        return registry

    def load_from_pairs(self, pairs: Iterable[Tuple[str, str]]) -> None:
        """Add one mapping per pair.

        Raises ConfigError on invalid or colliding identifiers, or when the
        registry would end up empty.
        """

        for input_id, output_id in pairs:
            self._validate_identifier(input_id)
            self._validate_identifier(output_id)
            if input_id == output_id:
                raise ConfigError(
                    f"Input and output topic are identical: {input_id!r}"
                )
            for identifier in (input_id, output_id):
                if identifier in self._by_input or identifier in self._by_output:
                    raise ConfigError(f"Duplicate topic identifier: {identifier!r}")

            mapping = DeviceMapping(input_id=input_id, output_id=output_id)
            self._mappings.append(mapping)
            self._by_input[input_id] = mapping
            self._by_output[output_id] = mapping
            LOGGER.debug("Mapped device topic %s -> %s", input_id, output_id)

        if not self._mappings:
            raise ConfigError("No topic mappings configured")

    def load_mapping_file(self, path: Path) -> None:
        try:
            with path.open("r", encoding="utf-8") as stream:
                pairs = parse_mapping_lines(stream)
        except OSError as exc:
            raise ConfigError(f"Unable to read topic mappings from {path}: {exc}") from exc

        self.load_from_pairs(pairs)
        LOGGER.info("Loaded %d topic mapping(s) from %s", len(self), path)

    def lookup_by_input(self, input_id: str) -> DeviceMapping:
        try:
            return self._by_input[input_id]
        except KeyError:
            raise NotFoundError(f"unknown input topic {input_id!r}") from None

    def lookup_by_output(self, output_id: str) -> DeviceMapping:
        try:
            return self._by_output[output_id]
        except KeyError:
            raise NotFoundError(f"unknown output topic {output_id!r}") from None

    @property
    def mappings(self) -> List[DeviceMapping]:
        return list(self._mappings)

    def __iter__(self) -> Iterator[DeviceMapping]:
        return iter(self._mappings)

    def __len__(self) -> int:
        return len(self._mappings)

    @staticmethod
    def _validate_identifier(identifier: str) -> None:
        if not identifier:
            raise ConfigError("Empty topic identifier")
        if _FORBIDDEN_CHARACTERS & set(identifier):
            raise ConfigError(
                f"Topic identifier {identifier!r} may not contain '/', '+' or '#'"
            )
