"""Army book document model as served by Army Forge exports."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Annotated, Any, Literal, Union

from pydantic import (
    AliasChoices,
    BaseModel,
    BeforeValidator,
    ConfigDict,
    Field,
    ValidationError,
    model_validator,
)
from pydantic.alias_generators import to_camel


class InvalidDocument(ValueError):
    """Raised when an army document is missing its required structure."""


class PayloadModel(BaseModel):
    """Immutable model serialized with camelCase keys."""

    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )


class DocumentModel(PayloadModel):
    model_config = ConfigDict(extra="ignore")

    @model_validator(mode="before")
    @classmethod
    def _drop_nulls(cls, data: Any) -> Any:
        # Army Forge writes `null` for absent collections; let defaults apply.
        if isinstance(data, Mapping):
            return {key: value for key, value in data.items() if value is not None}
        return data


def _optional_number(value: Any) -> Any:
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        try:
            number = float(text)
        except ValueError:
            return value
        return int(number) if number.is_integer() else number
    return value


Number = Annotated[Union[int, float, None], BeforeValidator(_optional_number)]


class Rule(DocumentModel):
    name: str | None = None
    label: str | None = None
    rating: Number = None

    @property
    def display_name(self) -> str:
        return self.name or self.label or ""


class Weapon(DocumentModel):
    name: str
    count: int = 1
    range: int | None = None
    attacks: int | None = None
    special_rules: tuple[Rule, ...] = ()

    @property
    def is_melee(self) -> bool:
        return not self.range


# Upgrade gains. Army Forge tags each gain with a `type` string; the model
# keeps an explicit `kind` discriminator instead of passing raw mappings on.

_GAIN_KINDS = {
    "ArmyBookWeapon": "weapon",
    "ArmyBookRule": "rule",
    "ArmyBookDefense": "rule",
    "ArmyBookItem": "item",
}


class WeaponGrant(DocumentModel):
    kind: Literal["weapon"] = "weapon"
    name: str = ""
    count: int = 1
    range: int | None = None
    attacks: int | None = None
    special_rules: tuple[Rule, ...] = ()


class RuleGrant(DocumentModel):
    kind: Literal["rule"] = "rule"
    name: str | None = None
    label: str | None = None
    rating: Number = None


class StatModifier(DocumentModel):
    kind: Literal["stat"] = "stat"
    stat: str
    value: Number = None


class OtherGain(DocumentModel):
    kind: Literal["other"] = "other"
    source_type: str | None = None
    name: str | None = None
    label: str | None = None


def _tag_gains(value: Any) -> Any:
    if not isinstance(value, (list, tuple)):
        return value
    tagged: list[Any] = []
    for entry in value:
        if isinstance(entry, Mapping) and "kind" not in entry:
            raw_type = entry.get("type")
            kind = _GAIN_KINDS.get(str(raw_type or ""))
            if kind is None:
                kind = "stat" if "stat" in entry else "other"
            entry = {**entry, "kind": kind}
            if kind == "other" and raw_type is not None:
                entry.setdefault("sourceType", str(raw_type))
        tagged.append(entry)
    return tagged


class ItemGrant(DocumentModel):
    kind: Literal["item"] = "item"
    name: str | None = None
    label: str | None = None
    count: int = 1
    content: Gains = ()


Gain = Annotated[
    Union[WeaponGrant, RuleGrant, ItemGrant, StatModifier, OtherGain],
    Field(discriminator="kind"),
]
Gains = Annotated[tuple[Gain, ...], BeforeValidator(_tag_gains)]

ItemGrant.model_rebuild()


class UnitCost(DocumentModel):
    unit_id: str
    cost: int | None = None


class UpgradeOption(DocumentModel):
    id: str | None = Field(default=None, validation_alias=AliasChoices("id", "uid"))
    label: str | None = None
    cost: int | None = None
    costs: tuple[UnitCost, ...] = ()
    gains: Gains = ()


class UpgradeSection(DocumentModel):
    id: str | None = Field(default=None, validation_alias=AliasChoices("id", "uid"))
    label: str | None = None
    options: tuple[UpgradeOption, ...] = ()


class UpgradePackage(DocumentModel):
    uid: str
    hint: str | None = None
    sections: tuple[UpgradeSection, ...] = ()


class Unit(DocumentModel):
    id: str
    name: str
    cost: int | None = None
    quality: int | None = None
    defense: int | None = None
    size: int | None = None
    weapons: tuple[Weapon, ...] = ()
    rules: tuple[Rule, ...] = ()
    upgrades: tuple[str, ...] = ()


class Spell(DocumentModel):
    name: str
    threshold: int | None = None
    effect: str | None = None


class SpecialRule(DocumentModel):
    name: str
    description: str | None = None


class ArmyDocument(DocumentModel):
    uid: str | None = None
    name: str = ""
    generic_name: str | None = None
    enabled_game_systems: tuple[int, ...] = ()
    version_string: str | None = None
    units: tuple[Unit, ...]
    upgrade_packages: tuple[UpgradePackage, ...] = ()
    background: str | None = None
    spells: tuple[Spell, ...] = ()
    special_rules: tuple[SpecialRule, ...] = ()


def parse_document(raw: Any) -> ArmyDocument:
    if isinstance(raw, ArmyDocument):
        return raw
    if not isinstance(raw, Mapping):
        raise InvalidDocument("Dokument armii musi być obiektem JSON.")
    if not isinstance(raw.get("units"), (list, tuple)):
        raise InvalidDocument("Dokument armii nie zawiera listy jednostek.")
    try:
        return ArmyDocument.model_validate(raw)
    except ValidationError as exc:
        raise InvalidDocument(
            f"Nieprawidłowy dokument armii ({exc.error_count()} błędów walidacji)."
        ) from exc
