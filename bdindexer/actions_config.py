"""Configuration of the actions module."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, Optional, Union

import yaml

DEFAULT_PORT = 3000


@dataclass(frozen=True)
class ActionsConfig:
    """The port the actions server listens on and an optional remote node to query."""

    port: int = DEFAULT_PORT
    node: Optional[Mapping[str, Any]] = None


def default_config() -> ActionsConfig:
    """Return the configuration used when none is given."""
    return ActionsConfig(port=DEFAULT_PORT, node=None)


def parse_config(data: Union[bytes, bytearray, str]) -> Optional[ActionsConfig]:
    """Read the ``actions`` section of a YAML document.

    Returns None when the document has no such section.
    """
    text = bytes(data).decode("utf-8") if isinstance(data, (bytes, bytearray)) else data
    try:
        document = yaml.safe_load(text)
    except yaml.YAMLError as err:
        raise ValueError(f"invalid configuration: {err}") from err

    if document is None:
        return None
    if not isinstance(document, dict):
        raise ValueError("the configuration must be a mapping")

    section = document.get("actions")
    if section is None:
        return None
    if not isinstance(section, dict):
        raise ValueError("the actions section must be a mapping")

    port = section.get("port")
    if port is None:
        port = 0
    if isinstance(port, bool) or not isinstance(port, int) or port < 0:
        raise ValueError(f"invalid actions port: {port!r}")

    node = section.get("node")
    if node is not None and not isinstance(node, dict):
        raise ValueError("the actions node must be a mapping")

    return ActionsConfig(port=port, node=node)