"""Robot stats and the final persisted record."""

from __future__ import annotations

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

# Conventional ranges the text service is asked to respect. Not enforced.
HP_RANGE = (500, 2000)
ATK_RANGE = (10, 100)
DEF_RANGE = (5, 50)


class RobotStats(BaseModel):
    """Structured stats generated from the input photo."""

    model_config = ConfigDict(populate_by_name=True)

    name: str = Field(validation_alias=AliasChoices("name", "Name"))
    lore: str = Field(validation_alias=AliasChoices("lore", "Lore"))
    hp: int = Field(validation_alias=AliasChoices("hp", "HP"))
    atk: int = Field(validation_alias=AliasChoices("atk", "ATK"))
    defense: int = Field(
        validation_alias=AliasChoices("def", "DEF", "defense"),
        serialization_alias="def",
    )
    visual_description: str = Field(
        validation_alias=AliasChoices(
            "visual_description", "visualDescription", "VisualDescription",
        ),
    )


class RobotRecord(BaseModel):
    """A finished robot. Created once at the end of a successful run."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str
    name: str
    lore: str
    hp: int
    atk: int
    defense: int = Field(alias="def")
    original_image_path: str
    image_path: str
    model_path: str
    attack_model_path: str
    created_at: int
    generation_time_ms: int
