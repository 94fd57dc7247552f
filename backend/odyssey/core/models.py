"""Pydantic models for the asset pipeline documents.

Validates taxonomy and metadata documents at the parse boundary so that a
missing field fails loudly instead of flowing downstream as an empty value.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, computed_field

from odyssey.core.errors import StructuralInputError


class TraitValue(BaseModel):
    """One option within a trait type, backed by one layer image file."""

    model_config = ConfigDict(populate_by_name=True)

    name: str = Field(..., min_length=1, description="Layer file name including extension")
    # Persisted as "probability" (field name used by the on-chain population step)
    weight: float = Field(default=0.0, ge=0, le=100, alias="probability")


class TraitType(BaseModel):
    """Axis of variation; `layer` is the two-digit draw order ("01" is the base)."""

    model_config = ConfigDict(populate_by_name=True)

    layer: str = Field(..., pattern=r"^[0-9]{2}$")
    trait_values: list[TraitValue] = Field(..., min_length=1, alias="traitValues")


class Taxonomy(BaseModel):
    """Trait type label -> TraitType, iterated in layer order."""

    trait_types: dict[str, TraitType] = Field(default_factory=dict)

    def ordered(self) -> list[tuple[str, TraitType]]:
        """(label, trait type) pairs sorted by layer, base layer first."""
        return sorted(self.trait_types.items(), key=lambda item: item[1].layer)

    def folder_name(self, label: str) -> str:
        """Source folder of a trait type, e.g. "02_Eyes"."""
        return f"{self.trait_types[label].layer}_{label}"

    def to_document(self) -> dict[str, Any]:
        """Serialize to the persisted trait_config.json shape."""
        return {
            label: trait_type.model_dump(by_alias=True)
            for label, trait_type in self.ordered()
        }

    @classmethod
    def from_document(cls, document: dict[str, Any]) -> "Taxonomy":
        return cls(trait_types=document)


class Selection(BaseModel):
    """One token's chosen trait value for one trait type."""

    model_config = ConfigDict(frozen=True)

    token_id: int = Field(..., ge=0)
    trait_type: str = Field(..., min_length=1)
    trait_value: str = Field(..., min_length=1)


def single_token_id(selections: list[Selection]) -> int:
    """Token id shared by all selections; mixed or empty input is an error."""
    if not selections:
        raise StructuralInputError("No selections given")

    token_ids = {s.token_id for s in selections}
    if len(token_ids) != 1:
        raise StructuralInputError(f"Selections span several tokens: {sorted(token_ids)}")
    return selections[0].token_id


class Attribute(BaseModel):
    """Single {trait_type, value} pair of a metadata document."""

    model_config = ConfigDict(extra="allow")

    trait_type: str
    value: str | int | float


class MetadataDocument(BaseModel):
    """Token metadata document.

    Fields this pipeline does not originate (properties.creators,
    seller_fee_basis_points, symbol, ...) are kept as extras and written back
    untouched.
    """

    model_config = ConfigDict(extra="allow")

    name: str = Field(..., min_length=1)
    image: str = Field(default="")
    description: str = Field(default="")
    attributes: list[Attribute] = Field(default_factory=list)

    def to_document(self) -> dict[str, Any]:
        return self.model_dump(mode="json")


class UploadRecord(BaseModel):
    """Result of uploading one artifact (not persisted)."""

    digest: str = Field(..., description="Hex SHA-256 of the bytes sent")
    content_address: str = Field(..., min_length=1)
    uri: str
    tags: dict[str, str] = Field(default_factory=dict)


class ValidationReport(BaseModel):
    """Outcome of the pre-flight asset directory check."""

    defects: list[str] = Field(default_factory=list)
    image_type: str | None = Field(default=None, description="Active image extension (png/jpg/jpeg)")
    token_count: int = Field(default=0, description="Number of contiguous indices found (0..N-1)")

    @computed_field  # type: ignore[prop-decorator]
    @property
    def ok(self) -> bool:
        return not self.defects and self.image_type is not None
