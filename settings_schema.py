from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel


class SettingsSchema(BaseModel):
    """User settings merged over hard-coded defaults.

    ``setsDefault``/``repsDefault`` seed new drafts. The progression
    constants feed :class:`recommendation_service.ProgressionRules`.
    Older backups store the draft defaults as ``sets``/``reps``; both
    spellings are accepted.
    """

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, extra="ignore"
    )

    sets_default: int = Field(
        4,
        ge=1,
        validation_alias=AliasChoices("setsDefault", "sets", "sets_default"),
        serialization_alias="setsDefault",
    )
    reps_default: int = Field(
        10,
        ge=0,
        validation_alias=AliasChoices("repsDefault", "reps", "reps_default"),
        serialization_alias="repsDefault",
    )
    max_weight_kg: float = Field(200.0, gt=0)
    show_best: bool = True
    weight_increment_kg: float = Field(2.5, gt=0)
    rep_target: int = Field(10, ge=1)
    rep_nudge: int = Field(1, ge=1)

    def to_dict(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)


DEFAULT_SETTINGS = SettingsSchema().to_dict()


def validate_settings(data: dict) -> SettingsSchema:
    try:
        return SettingsSchema.model_validate(data)
    except ValidationError as e:
        raise ValueError(str(e))


def merge_settings(*layers: dict | None) -> SettingsSchema:
    """Return settings built from ``layers`` applied in order over defaults."""
    merged: dict = {}
    for layer in layers:
        if layer:
            merged.update(
                validate_settings(layer).model_dump(
                    mode="json", by_alias=True, exclude_unset=True
                )
            )
    return validate_settings(merged)
