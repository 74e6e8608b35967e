"""Topology documents (YAML or JSON) to stack declarations.

Document layout::

    nodes:
      - id: db
        kind: datastore
        attributes:
          port: 5432
          network: {ref: vpc.network_id}
      - id: app
        kind: container
        attributes:
          environment:
            DATABASE_HOST: {reach: db.hostname}
          secrets:
            DATABASE_USER: {secret: db.username}
          mount_points:
            - {mount: efs, path: /mnt/data, read_only: false}
        depends_on: [vpc]
    edges:
      - {from: worker, to: db, channel: network, scope: "*"}

Reference markers are single-purpose mappings: ``{ref: node.attr}``,
``{reach: node.attr, port: n}``, ``{secret: node.field}`` and
``{mount: node, path: p, read_only: b, volume: v}``.
"""

from __future__ import annotations

from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml

from stackwire.errors import DeclarationError, DocumentError
from stackwire.graph.builder import StackBuilder
from stackwire.models.edges import AccessEdge, Channel, Direction
from stackwire.models.references import MountRef, NetworkRef, Reference, mount, reach, ref, secret_field, split_target
from stackwire.models.resources import ResourceKind

_MARKER_KEYS: dict[str, frozenset[str]] = {
    "ref": frozenset({"ref"}),
    "reach": frozenset({"reach", "port"}),
    "secret": frozenset({"secret"}),
    "mount": frozenset({"mount", "path", "read_only", "volume"}),
}


def load_document(path: Path | str) -> dict[str, Any]:
    """Read a YAML or JSON topology document."""
    source = Path(path)
    try:
        with source.open(encoding="utf-8") as handle:
            document = yaml.safe_load(handle)
    except OSError as exc:
        raise DocumentError(f"Cannot read {source}: {exc}") from exc
    except yaml.YAMLError as exc:
        raise DocumentError(f"Invalid YAML in {source}: {exc}") from exc
    if not isinstance(document, dict):
        raise DocumentError(f"{source}: top level must be a mapping with 'nodes' and optional 'edges'")
    return document


def load_stack(path: Path | str) -> StackBuilder:
    return builder_from_document(load_document(path))


def builder_from_document(document: Mapping[str, Any]) -> StackBuilder:
    """Translate a parsed document into a StackBuilder.

    Malformed entries are left out and their DocumentErrors are recorded on
    the builder, so ``build()`` reports them together with every graph
    error (cycles, unknown references) in one DeclarationError.

    Raises:
        DeclarationError: when ``nodes`` is not a list at all.
    """
    builder = StackBuilder()

    nodes = document.get("nodes")
    if not isinstance(nodes, list):
        raise DeclarationError([DocumentError("'nodes' must be a list")])
    for index, entry in enumerate(nodes):
        try:
            for error in _add_node(builder, entry, f"nodes[{index}]"):
                builder.record_error(error)
        except DocumentError as exc:
            builder.record_error(exc)

    edges = document.get("edges") or []
    if not isinstance(edges, list):
        builder.record_error(DocumentError("'edges' must be a list"))
        edges = []
    for index, entry in enumerate(edges):
        try:
            builder.add_edge(_parse_edge(entry, f"edges[{index}]"))
        except DocumentError as exc:
            builder.record_error(exc)
    return builder


def _add_node(builder: StackBuilder, entry: Any, where: str) -> list[DocumentError]:
    """Declare the node in *entry*; return the errors of attributes that had to be dropped."""
    if not isinstance(entry, dict):
        raise DocumentError(f"{where}: node entry must be a mapping")
    node_id = entry.get("id")
    if not isinstance(node_id, str) or not node_id:
        raise DocumentError(f"{where}: 'id' must be a non-empty string")
    try:
        kind = ResourceKind(str(entry.get("kind", "")))
    except ValueError:
        valid = sorted(kind.value for kind in ResourceKind)
        raise DocumentError(f"{where} ({node_id}): unknown kind {entry.get('kind')!r}, expected one of {valid}") from None
    attributes = entry.get("attributes") or {}
    if not isinstance(attributes, dict):
        raise DocumentError(f"{where} ({node_id}): 'attributes' must be a mapping")
    depends_on = entry.get("depends_on") or []
    if not isinstance(depends_on, list) or not all(isinstance(item, str) for item in depends_on):
        raise DocumentError(f"{where} ({node_id}): 'depends_on' must be a list of node ids")
    parsed: dict[str, Any] = {}
    dropped: list[DocumentError] = []
    for key, value in attributes.items():
        try:
            parsed[str(key)] = parse_value(value, f"{where}.attributes.{key}")
        except DocumentError as exc:
            dropped.append(exc)
    builder.add_node(node_id, kind, depends_on=depends_on, **parsed)
    return dropped


def _parse_edge(entry: Any, where: str) -> AccessEdge:
    if not isinstance(entry, dict):
        raise DocumentError(f"{where}: edge entry must be a mapping")
    missing = [key for key in ("from", "to", "channel") if key not in entry]
    if missing:
        raise DocumentError(f"{where}: missing {', '.join(missing)}")
    try:
        return AccessEdge(
            from_node=str(entry["from"]),
            to_node=str(entry["to"]),
            channel=Channel(str(entry["channel"]).lower()),
            scope=str(entry.get("scope", "*")),
            direction=Direction(str(entry.get("direction", Direction.INGRESS.value)).lower()),
        )
    except ValueError as exc:
        raise DocumentError(f"{where}: {exc}") from None


def parse_value(value: Any, where: str = "") -> Any:
    """Replace reference markers inside *value* with reference objects."""
    if isinstance(value, dict):
        marker = _marker(value, where)
        if marker is not None:
            return marker
        return {key: parse_value(item, f"{where}.{key}") for key, item in value.items()}
    if isinstance(value, list):
        return [parse_value(item, f"{where}[{index}]") for index, item in enumerate(value)]
    return value


def _marker(value: dict[str, Any], where: str) -> Reference | None:
    found = [name for name in _MARKER_KEYS if name in value]
    if not found:
        return None
    if len(found) > 1:
        raise DocumentError(f"{where}: a value can carry only one of {found}")
    name = found[0]
    extra = set(value) - _MARKER_KEYS[name]
    if extra:
        raise DocumentError(f"{where}: unexpected keys {sorted(extra)} in '{name}' reference")

    try:
        if name == "mount":
            return _mount(value, where)
        node_id, attribute = split_target(str(value[name]))
    except ValueError as exc:
        raise DocumentError(f"{where}: {exc}") from None
    if name == "ref":
        return ref(node_id, attribute)
    if name == "secret":
        return secret_field(node_id, attribute)
    return _reach(node_id, attribute, value.get("port"), where)


def _reach(node_id: str, attribute: str, port: Any, where: str) -> NetworkRef:
    if port is not None and (not isinstance(port, int) or isinstance(port, bool) or not 0 < port < 65536):
        raise DocumentError(f"{where}: port must be an integer between 1 and 65535, got {port!r}")
    return reach(node_id, attribute, port)


def _mount(value: dict[str, Any], where: str) -> MountRef:
    path = value.get("path")
    if not isinstance(path, str) or not path.startswith("/"):
        raise DocumentError(f"{where}: mount 'path' must be an absolute path")
    read_only = value.get("read_only", False)
    if not isinstance(read_only, bool):
        raise DocumentError(f"{where}: mount 'read_only' must be a boolean")
    volume = value.get("volume")
    return mount(str(value["mount"]), path, read_only=read_only, volume=None if volume is None else str(volume))
