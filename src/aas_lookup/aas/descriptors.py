"""Wire models for registry shell descriptors and discovery entries."""

from pydantic import BaseModel, ConfigDict, Field


class _WireModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class LangString(_WireModel):
    language: str
    text: str


class AdministrativeInformation(_WireModel):
    version: str | None = None
    revision: str | None = None


class ProtocolInformation(_WireModel):
    href: str
    endpoint_protocol: str | None = Field(default=None, alias="endpointProtocol")
    subprotocol: str | None = None


class Endpoint(_WireModel):
    interface: str | None = None
    protocol_information: ProtocolInformation = Field(alias="protocolInformation")


class ShellDescriptor(_WireModel):
    """Registry-held summary record pointing at where the full AAS lives."""

    id: str
    id_short: str | None = Field(default=None, alias="idShort")
    asset_kind: str | None = Field(default=None, alias="assetKind")
    global_asset_id: str | None = Field(default=None, alias="globalAssetId")
    administration: AdministrativeInformation | None = None
    endpoints: list[Endpoint] = Field(default_factory=list)
    description: list[LangString] | None = None

    def first_href(self) -> str | None:
        """The first endpoint's href; the only one the fetch chain follows."""
        if not self.endpoints:
            return None
        return self.endpoints[0].protocol_information.href or None

    def to_wire(self) -> dict[str, object]:
        return self.model_dump(by_alias=True, exclude_none=True)


class SpecificAssetId(_WireModel):
    """``{name, value}`` pair linking an asset to a shell in discovery."""

    name: str
    value: str
