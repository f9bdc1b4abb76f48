"""Harvest the properties that take part in compatibility checks.

Only a handful of leaves in an AAS matter for matching:

* ``TechnicalData/TechnicalProperties/*``: protocol, housing and insert
  surface identifiers (which ones depends on the participant's role);
* ``InterfaceConnectors/ElectricalConnectors/ElectricalInterfaceVersion`` and
  ``Nameplate/HardwareVersion``: the electrical interface of adapters and
  devices.

Missing submodels, elements or values leave the corresponding key out of the
map; extraction never raises.
"""

import json

from aas_lookup.aas.tree import children, collect_values, leaf_value, resolve_element
from aas_lookup.domain.models import AasEnvelope, PropertyMap, Role

TECHNICAL_DATA = "TechnicalData"
TECHNICAL_PROPERTIES = "TechnicalProperties"
INTERFACE_CONNECTORS = "InterfaceConnectors"
ELECTRICAL_CONNECTORS = "ElectricalConnectors"
ELECTRICAL_INTERFACE_VERSION = "ElectricalInterfaceVersion"
NAMEPLATE = "Nameplate"
HARDWARE_VERSION = "HardwareVersion"

SUPPORTED_PROTOCOL = "SupportedProtocol"
HOUSING_NUMBER = "HousingNumber"
LIST_OF_HOUSING_NUMBERS = "ListOfHousingNumbers"
INSERT_SURFACE = "InsertSurface"
ADAPTER_TYPE = "AdapterType"

HARVESTED_KEYS: dict[Role, frozenset[str]] = {
    Role.ARTICLE: frozenset({SUPPORTED_PROTOCOL, HOUSING_NUMBER}),
    Role.NON_ARTICLE: frozenset({SUPPORTED_PROTOCOL, INSERT_SURFACE, ADAPTER_TYPE}),
}


def extract(envelope: AasEnvelope, role: Role, language: str = "en") -> PropertyMap:
    """Technical properties of an envelope for the given role.

    Args:
        envelope: Envelope with inlined submodels.
        role: ``ARTICLE`` harvests housing numbers, ``NON_ARTICLE`` harvests
            insert surface and adapter type; both harvest the protocol.
        language: Language picked from multilingual values.

    Returns:
        Flat idShort -> value map. ``ListOfHousingNumbers`` holds a JSON
        encoded list of strings.
    """
    result: PropertyMap = {}
    technical_properties = resolve_element(envelope.submodels, TECHNICAL_DATA, TECHNICAL_PROPERTIES)
    if technical_properties is None:
        return result

    wanted = HARVESTED_KEYS[role]
    for element in children(technical_properties):
        id_short = element.get("idShort")
        if role is Role.ARTICLE and id_short == LIST_OF_HOUSING_NUMBERS:
            values = collect_values(element, language)
            if values:
                result[LIST_OF_HOUSING_NUMBERS] = json.dumps(values)
            continue
        if id_short not in wanted:
            continue
        value = leaf_value(element, language)
        if value is not None:
            result[id_short] = value
    return result


def extract_device_properties(envelope: AasEnvelope, language: str = "en") -> PropertyMap:
    """Electrical interface version and hardware version of an adapter or device."""
    result: PropertyMap = {}

    interface_version = leaf_value(
        resolve_element(
            envelope.submodels,
            INTERFACE_CONNECTORS,
            ELECTRICAL_CONNECTORS,
            ELECTRICAL_INTERFACE_VERSION,
        ),
        language,
    )
    if interface_version is not None:
        result[ELECTRICAL_CONNECTORS] = interface_version

    hardware_version = leaf_value(
        resolve_element(envelope.submodels, NAMEPLATE, HARDWARE_VERSION), language
    )
    if hardware_version is not None:
        result[HARDWARE_VERSION] = hardware_version

    return result


def decode_housing_numbers(encoded: str) -> list[str]:
    """Inverse of the ``ListOfHousingNumbers`` encoding; malformed text gives []."""
    try:
        values = json.loads(encoded)
    except ValueError:
        return []
    if not isinstance(values, list):
        return []
    return [value for value in values if isinstance(value, str)]
