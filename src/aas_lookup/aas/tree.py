"""Optional-chaining helpers for walking raw AAS JSON trees.

Documents from the environment service are frequently partial: submodels
without elements, collections without values, properties without a value.
Every helper here returns ``None`` (or an empty list) on a missing node or an
unexpected node type instead of raising, so callers can chain lookups and
simply omit whatever is absent.
"""

from collections.abc import Iterable, Mapping, Sequence
from typing import Any

PathStep = str | int

LEAF_MODEL_TYPES = frozenset({"Property", "MultiLanguageProperty"})
CONTAINER_MODEL_TYPES = frozenset({"SubmodelElementCollection", "SubmodelElementList"})


def try_get(node: Any, *path: PathStep) -> Any | None:
    """Follow object keys and array indices from ``node``.

    Args:
        node: Any decoded JSON value.
        *path: Object keys (str) and array indices (int) to follow in order.

    Returns:
        The value at the end of the path, or None if any step is missing,
        null, or applied to a node of the wrong kind.
    """
    current = node
    for step in path:
        if isinstance(step, int):
            if not isinstance(current, list) or not -len(current) <= step < len(current):
                return None
            current = current[step]
        else:
            if not isinstance(current, Mapping):
                return None
            current = current.get(step)
        if current is None:
            return None
    return current


def try_get_str(node: Any, *path: PathStep) -> str | None:
    """Like ``try_get`` but only returns non-empty strings."""
    value = try_get(node, *path)
    if isinstance(value, str) and value:
        return value
    return None


def try_get_list(node: Any, *path: PathStep) -> list[Any]:
    """Like ``try_get`` but returns an empty list unless the target is an array."""
    value = try_get(node, *path)
    return value if isinstance(value, list) else []


def find_by_id_short(elements: Any, id_short: str) -> Mapping[str, Any] | None:
    """Return the first object in ``elements`` whose ``idShort`` matches exactly."""
    if not isinstance(elements, list):
        return None
    for element in elements:
        if isinstance(element, Mapping) and element.get("idShort") == id_short:
            return element
    return None


def children(node: Any) -> list[Mapping[str, Any]]:
    """Child elements of a submodel, collection or list; empty for anything else."""
    if not isinstance(node, Mapping):
        return []
    if "submodelElements" in node:
        raw = node.get("submodelElements")
    elif node.get("modelType", "SubmodelElementCollection") in CONTAINER_MODEL_TYPES:
        raw = node.get("value")
    else:
        return []
    if not isinstance(raw, list):
        return []
    return [child for child in raw if isinstance(child, Mapping)]


def find_submodel(submodels: Iterable[Any], id_short: str) -> Mapping[str, Any] | None:
    """Locate a submodel document by exact ``idShort`` match."""
    for submodel in submodels:
        if isinstance(submodel, Mapping) and submodel.get("idShort") == id_short:
            return submodel
    return None


def resolve_element(
    submodels: Iterable[Any],
    submodel_id_short: str,
    *element_path: str,
) -> Mapping[str, Any] | None:
    """Resolve ``submodel_id_short/element/element/...`` to an element.

    Each step descends into the children of the previous node by ``idShort``.
    """
    node: Mapping[str, Any] | None = find_submodel(submodels, submodel_id_short)
    for id_short in element_path:
        if node is None:
            return None
        node = find_by_id_short(children(node), id_short)
    return node


def _scalar_text(value: Any) -> str | None:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (str, int, float)):
        return str(value)
    return None


def lang_string(entries: Any, language: str = "en") -> str | None:
    """Pick the text for ``language`` from a list of ``{language, text}`` entries.

    An exact tag match wins; otherwise the first regional variant
    (``en-US`` for ``en``) is used.
    """
    if not isinstance(entries, list):
        return None
    regional: str | None = None
    for entry in entries:
        if not isinstance(entry, Mapping):
            continue
        tag = entry.get("language")
        text = _scalar_text(entry.get("text"))
        if not isinstance(tag, str) or text is None:
            continue
        if tag == language:
            return text
        if regional is None and tag.startswith(f"{language}-"):
            regional = text
    return regional


def leaf_value(element: Any, language: str = "en") -> str | None:
    """Text value of a Property or MultiLanguageProperty element.

    Elements of any other model type, and leaves without a usable value,
    yield None. Elements without a ``modelType`` are read by the shape of
    their value.
    """
    if not isinstance(element, Mapping):
        return None
    model_type = element.get("modelType")
    if model_type is not None and model_type not in LEAF_MODEL_TYPES:
        return None
    value = element.get("value")
    if isinstance(value, list):
        if model_type == "Property":
            return None
        return lang_string(value, language)
    if model_type == "MultiLanguageProperty":
        return None
    return _scalar_text(value)


def collect_values(element: Any, language: str = "en") -> list[str]:
    """Leaf values held by a list or collection element, in document order.

    Accepts both element arrays (``[{"modelType": "Property", "value": ...}]``)
    and bare value arrays (``["A1", "A2"]``).
    """
    if not isinstance(element, Mapping):
        return []
    raw = element.get("value")
    if not isinstance(raw, list):
        return []
    values: list[str] = []
    for item in raw:
        text = leaf_value(item, language) if isinstance(item, Mapping) else _scalar_text(item)
        if text is not None:
            values.append(text)
    return values


def reference_key_values(references: Sequence[Any]) -> list[str]:
    """First key value of each AAS reference (``{"keys": [{"value": ...}]}``)."""
    values: list[str] = []
    for reference in references:
        value = try_get_str(reference, "keys", 0, "value")
        if value is not None:
            values.append(value)
    return values
