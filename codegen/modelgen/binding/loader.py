"""
YAML/JSON declaration loader.

Stands in for the language-specific source parser: reads entity declarations
from a YAML (or JSON, a YAML subset) document and builds a Binding.

Example declaration file:
    package: tasks
    entities:
      - name: Task
        properties:
          - name: id
          - name: title
            indexed: true
          - name: owner
            relation_target: User
        relations:
          - name: tags
            target: Tag
      - name: User
        uid: 8717895732742165505
        properties:
          - name: id
          - name: email
            uid:            # empty: uid request, prints the stored uid

Invariants:
    - A present-but-empty "uid" key is a uid request, never "no uid"
    - Unknown keys are ignored; wrong types are a BindingError
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Union

import yaml

from ..modelinfo.errors import BindingError
from ..modelinfo.uidgen import UID_MAX
from .types import Binding, BindingEntity, BindingProperty, BindingRelation

logger = logging.getLogger(__name__)


def load_binding(path: Union[str, Path]) -> Binding:
    """Read a declaration file.

    Raises:
        BindingError: If the file can't be read or is malformed
    """
    path = str(path)
    try:
        with open(path, encoding="utf-8") as f:
            text = f.read()
    except OSError as e:
        raise BindingError(f"can't read declarations {path}: {e}", path) from e

    binding = parse_yaml(text, source=path)
    logger.debug(f"Loaded {len(binding.entities)} entity declarations from {path}")
    return binding


def parse_yaml(text: str, source: str = "") -> Binding:
    """Parse declarations from a YAML or JSON string."""
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise BindingError(f"can't parse declarations {source}: {e}", source) from e
    return parse_binding(data or {}, source)


def parse_binding(data: dict[str, Any], source: str = "") -> Binding:
    """Build a Binding from decoded declarations."""
    if not isinstance(data, dict):
        raise BindingError(f"declarations {source} must be a mapping", source)

    entities = data.get("entities") or []
    if not isinstance(entities, list):
        raise BindingError(f"'entities' in {source} must be a list", source)

    return Binding(
        package=str(data.get("package", "")),
        entities=[_parse_entity(e, source) for e in entities],
        source=source,
    )


def _parse_entity(data: Any, source: str) -> BindingEntity:
    if not isinstance(data, dict):
        raise BindingError(f"entity declaration in {source} must be a mapping", source)

    name = str(data.get("name") or "")
    uid, uid_request = _parse_uid(data, f"entity {name}", source)
    return BindingEntity(
        name=name,
        properties=[_parse_property(p, name, source) for p in _list(data, "properties", name, source)],
        relations=[_parse_relation(r, name, source) for r in _list(data, "relations", name, source)],
        uid=uid,
        uid_request=uid_request,
    )


def _parse_property(data: Any, entity: str, source: str) -> BindingProperty:
    if isinstance(data, str):
        return BindingProperty(name=data)
    if not isinstance(data, dict):
        raise BindingError(f"property declaration on entity {entity} must be a mapping", source)

    name = str(data.get("name") or "")
    uid, uid_request = _parse_uid(data, f"property {name}, entity {entity}", source)
    return BindingProperty(
        name=name,
        uid=uid,
        uid_request=uid_request,
        relation_target=str(data.get("relation_target") or ""),
        indexed=_parse_flag(data, "indexed", f"property {name}, entity {entity}", source),
    )


def _parse_relation(data: Any, entity: str, source: str) -> BindingRelation:
    if not isinstance(data, dict):
        raise BindingError(f"relation declaration on entity {entity} must be a mapping", source)

    name = str(data.get("name") or "")
    target = str(data.get("target") or "")
    if not target:
        raise BindingError(f"relation {name} on entity {entity} has no target", source)

    uid, uid_request = _parse_uid(data, f"relation {name}, entity {entity}", source)
    return BindingRelation(name=name, target=target, uid=uid, uid_request=uid_request)


def _parse_uid(data: dict[str, Any], where: str, source: str) -> tuple[int, bool]:
    if "uid" not in data:
        return 0, False

    value = data["uid"]
    if value is None or value == "":
        return 0, True

    # bool is an int subclass
    if isinstance(value, int) and not isinstance(value, bool):
        uid = value
    elif isinstance(value, str) and value.isascii() and value.isdigit():
        uid = int(value)
    else:
        raise BindingError(f"can't parse uid {value!r} on {where}", source)

    if uid <= 0 or uid > UID_MAX:
        raise BindingError(f"uid {value!r} on {where} is out of range", source)
    return uid, False


def _parse_flag(data: dict[str, Any], key: str, where: str, source: str) -> bool:
    value = data.get(key, False)
    if not isinstance(value, bool):
        raise BindingError(f"'{key}' on {where} must be true or false, got {value!r}", source)
    return value


def _list(data: dict[str, Any], key: str, entity: str, source: str) -> list[Any]:
    value = data.get(key) or []
    if not isinstance(value, list):
        raise BindingError(f"'{key}' on entity {entity} must be a list", source)
    return value
