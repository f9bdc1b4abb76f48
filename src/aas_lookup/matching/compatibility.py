"""Compatibility predicates over harvested property maps.

Both predicates are total and boolean: a missing key is a failed check, never
"trivially compatible", and rules short-circuit in the order listed.
"""

from aas_lookup.domain.models import PropertyMap
from aas_lookup.matching.extractor import (
    HOUSING_NUMBER,
    INSERT_SURFACE,
    LIST_OF_HOUSING_NUMBERS,
    SUPPORTED_PROTOCOL,
    decode_housing_numbers,
)


def protocols_match(article: PropertyMap, candidate: PropertyMap) -> bool:
    """Both sides declare a protocol and it is the same one."""
    protocol = article.get(SUPPORTED_PROTOCOL)
    return protocol is not None and candidate.get(SUPPORTED_PROTOCOL) == protocol


def housing_matches(article: PropertyMap, candidate: PropertyMap) -> bool:
    """The candidate's insert surface fits the article's housing.

    A ``ListOfHousingNumbers`` on the article takes precedence over a single
    ``HousingNumber``.
    """
    insert_surface = candidate.get(INSERT_SURFACE)
    if insert_surface is None:
        return False
    encoded = article.get(LIST_OF_HOUSING_NUMBERS)
    if encoded is not None:
        return insert_surface in decode_housing_numbers(encoded)
    return article.get(HOUSING_NUMBER) == insert_surface


def is_adapter_compatible_with_article(article: PropertyMap, adapter: PropertyMap) -> bool:
    """Article -> adapter check: protocol first, then housing / insert surface.

    Not symmetric: the first argument must be the article's map.
    """
    return protocols_match(article, adapter) and housing_matches(article, adapter)


def is_device_compatible_with_adapter(adapter: PropertyMap, device: PropertyMap) -> bool:
    """Adapter -> device check: the electrical property maps must be identical.

    Same number of keys and the same value for every key. Two empty maps are
    compatible.
    """
    return len(adapter) == len(device) and all(
        key in device and device[key] == value for key, value in adapter.items()
    )
