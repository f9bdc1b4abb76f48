"""Core domain models for AAS lookup and compatibility matching."""

import json
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from enum import Enum
from typing import Any, Literal

PropertyMap = dict[str, str]
"""Flat idShort -> value map harvested from an AAS submodel tree."""


class Role(str, Enum):
    """Extraction role of a participant in a compatibility check."""

    ARTICLE = "article"
    NON_ARTICLE = "non_article"


class MatchState(str, Enum):
    """Request state derived from which identifiers were supplied."""

    ARTICLE_ONLY_INVALID = "article_only_invalid"
    ARTICLE_AND_ADAPTERS = "article_and_adapters"
    ARTICLE_AND_DEVICES = "article_and_devices"
    ARTICLE_ADAPTERS_DEVICES = "article_adapters_devices"
    ADAPTERS_AND_DEVICES_ONLY = "adapters_and_devices_only"
    NOTHING_PROVIDED = "nothing_provided"

    @property
    def is_terminal_error(self) -> bool:
        return self in (MatchState.ARTICLE_ONLY_INVALID, MatchState.NOTHING_PROVIDED)


@dataclass(frozen=True, slots=True, eq=False)
class AssetIdentifier:
    """External identifier of a physical or technical asset.

    An identifier is either an opaque string or a structured specific asset ID
    (``{"name": ..., "value": ...}``). Plain identifiers compare by their raw
    string, structured ones by the ``(name, value)`` pair.
    """

    raw: str
    """The identifier exactly as supplied by the caller."""

    name: str | None = None
    """Specific asset ID name, for structured identifiers."""

    value: str | None = None
    """Specific asset ID value, for structured identifiers."""

    @classmethod
    def parse(cls, raw: str) -> "AssetIdentifier":
        """Parse a caller-supplied identifier.

        A JSON object with string ``name`` and ``value`` members becomes a
        structured identifier; anything else is kept opaque.
        """
        text = raw.strip()
        if text.startswith("{"):
            try:
                data = json.loads(text)
            except ValueError:
                return cls(raw=raw)
            if (
                isinstance(data, dict)
                and isinstance(data.get("name"), str)
                and isinstance(data.get("value"), str)
            ):
                return cls(raw=raw, name=data["name"], value=data["value"])
        return cls(raw=raw)

    @classmethod
    def specific(cls, name: str, value: str) -> "AssetIdentifier":
        """Build a structured identifier from a specific asset ID pair."""
        raw = json.dumps({"name": name, "value": value}, separators=(",", ":"))
        return cls(raw=raw, name=name, value=value)

    @property
    def is_structured(self) -> bool:
        return self.name is not None and self.value is not None

    def query_key(self) -> str:
        """Text used as the discovery query key (before Base64URL encoding)."""
        if self.is_structured:
            return json.dumps({"name": self.name, "value": self.value}, separators=(",", ":"))
        return self.raw

    def display(self) -> str | dict[str, str]:
        """Unencoded form reported back to callers."""
        if self.is_structured:
            return {"name": self.name or "", "value": self.value or ""}
        return self.raw

    def _key(self) -> tuple[str, ...]:
        if self.is_structured:
            return ("specific", self.name or "", self.value or "")
        return ("raw", self.raw)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, AssetIdentifier):
            return NotImplemented
        return self._key() == other._key()

    def __hash__(self) -> int:
        return hash(self._key())

    def __str__(self) -> str:
        return self.raw


@dataclass(frozen=True, slots=True)
class AasEnvelope:
    """Normalized aggregate of one Asset Administration Shell.

    Combines the shell document from the environment with its submodels when
    inlining was requested. A lookup miss is represented by ``EMPTY_ENVELOPE``
    rather than an exception.
    """

    id: str
    """AAS identifier; empty for the not-found sentinel."""

    id_short: str | None = None
    """Short identifier of the shell."""

    administration: Mapping[str, Any] | None = None
    """Administrative information (version/revision) as delivered."""

    asset_information: Mapping[str, Any] | None = None
    """Asset information block (assetKind, globalAssetId, ...)."""

    submodels: tuple[Mapping[str, Any], ...] = ()
    """Inlined submodel documents; empty unless inlining was requested."""

    @property
    def is_empty(self) -> bool:
        return not self.id

    @classmethod
    def from_shell(
        cls,
        shell: Mapping[str, Any],
        submodels: Sequence[Mapping[str, Any]] = (),
    ) -> "AasEnvelope":
        """Build an envelope from a shell document and fetched submodels."""
        administration = shell.get("administration")
        asset_information = shell.get("assetInformation")
        id_short = shell.get("idShort")
        return cls(
            id=str(shell.get("id") or ""),
            id_short=id_short if isinstance(id_short, str) else None,
            administration=administration if isinstance(administration, Mapping) else None,
            asset_information=(
                asset_information if isinstance(asset_information, Mapping) else None
            ),
            submodels=tuple(submodels),
        )

    def to_dict(self) -> dict[str, Any]:
        """Serialize using AAS JSON member names."""
        result: dict[str, Any] = {"id": self.id, "idShort": self.id_short}
        if self.administration is not None:
            result["administration"] = dict(self.administration)
        if self.asset_information is not None:
            result["assetInformation"] = dict(self.asset_information)
        result["submodels"] = [dict(sm) for sm in self.submodels]
        return result


EMPTY_ENVELOPE = AasEnvelope(id="")


@dataclass(frozen=True, slots=True)
class Participant:
    """A matched participant: the caller's identifier and the resolved AAS id."""

    asset_id: AssetIdentifier
    aas_id: str | None

    def to_dict(self, prefix: str) -> dict[str, Any]:
        return {
            f"{prefix}AssetId": self.asset_id.display(),
            f"{prefix}AasId": self.aas_id,
        }


@dataclass(frozen=True, slots=True)
class TripleMatch:
    """Article, test adapter and test device that are mutually compatible."""

    article: Participant
    adapter: Participant
    device: Participant

    def to_dict(self) -> dict[str, Any]:
        return {
            **self.article.to_dict("article"),
            **self.adapter.to_dict("testAdapter"),
            **self.device.to_dict("testDevice"),
        }


@dataclass(frozen=True, slots=True)
class PairMatch:
    """Test adapter and test device with matching electrical interfaces."""

    adapter: Participant
    device: Participant

    def to_dict(self) -> dict[str, Any]:
        return {**self.adapter.to_dict("testAdapter"), **self.device.to_dict("testDevice")}


@dataclass(frozen=True, slots=True)
class TripleOutcome:
    """Result of an article + adapters + devices request."""

    matches: tuple[TripleMatch, ...] = ()
    kind: Literal["articleAdapterDevice"] = "articleAdapterDevice"

    def __len__(self) -> int:
        return len(self.matches)

    def to_dict(self) -> dict[str, Any]:
        return {"kind": self.kind, "matches": [m.to_dict() for m in self.matches]}


@dataclass(frozen=True, slots=True)
class PairOutcome:
    """Result of an adapters + devices request without an article."""

    matches: tuple[PairMatch, ...] = ()
    kind: Literal["adapterDevice"] = "adapterDevice"

    def __len__(self) -> int:
        return len(self.matches)

    def to_dict(self) -> dict[str, Any]:
        return {"kind": self.kind, "matches": [m.to_dict() for m in self.matches]}


@dataclass(frozen=True, slots=True)
class ParticipantList:
    """Result of an article checked against a single participant role."""

    article: Participant
    role: Literal["testAdapter", "testDevice"]
    participants: tuple[Participant, ...] = ()

    @property
    def kind(self) -> str:
        return "articleAdapters" if self.role == "testAdapter" else "articleDevices"

    def __len__(self) -> int:
        return len(self.participants)

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind,
            **self.article.to_dict("article"),
            "matches": [p.to_dict(self.role) for p in self.participants],
        }


MatchOutcome = TripleOutcome | PairOutcome | ParticipantList
