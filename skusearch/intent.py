"""
Search intent schema.

The intent is produced by an external natural-language translator and
consumed here as a validated pydantic model. Both the translator's
camelCase keys (targetData, timeRange) and snake_case keys are accepted.
"""
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic import ValidationError as PydanticValidationError

from skusearch.exceptions import IntentError
from skusearch.models import GroupDimension, TargetDataset


# ═══════════════════════════════════════════════════════════════════════════════
# ENUMS
# ═══════════════════════════════════════════════════════════════════════════════

class Operator(str, Enum):
    """Filter comparison operators."""
    GT = ">"
    LT = "<"
    GTE = ">="
    LTE = "<="
    EQ = "="
    CONTAINS = "CONTAINS"

    @property
    def is_numeric(self) -> bool:
        return self in (Operator.GT, Operator.LT, Operator.GTE, Operator.LTE)


OPERATOR_ALIASES = {
    ">": Operator.GT, "GT": Operator.GT,
    "<": Operator.LT, "LT": Operator.LT,
    ">=": Operator.GTE, "GTE": Operator.GTE,
    "<=": Operator.LTE, "LTE": Operator.LTE,
    "=": Operator.EQ, "==": Operator.EQ, "EQ": Operator.EQ,
    "CONTAINS": Operator.CONTAINS, "HAS": Operator.CONTAINS,
}


class SortDirection(str, Enum):
    ASC = "asc"
    DESC = "desc"


TIME_PRESETS = {
    "LAST_7_DAYS",
    "LAST_30_DAYS",
    "LAST_90_DAYS",
    "LAST_180_DAYS",
    "THIS_MONTH",
    "LAST_MONTH",
    "THIS_YEAR",
    "ALL_TIME",
}


# ═══════════════════════════════════════════════════════════════════════════════
# MODELS
# ═══════════════════════════════════════════════════════════════════════════════

class _IntentModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore", frozen=True)


class FilterSpec(_IntentModel):
    """One field condition; all filters of an intent must pass."""
    field: str
    operator: Operator = Field(validation_alias=AliasChoices("operator", "op"))
    value: Any = None
    label: Optional[str] = None

    @field_validator("operator", mode="before")
    @classmethod
    def _normalize_operator(cls, value: Any) -> Any:
        if isinstance(value, Operator):
            return value
        key = str(value).strip().upper()
        if key not in OPERATOR_ALIASES:
            raise ValueError(f"unsupported operator {value!r}")
        return OPERATOR_ALIASES[key]


class SortSpec(_IntentModel):
    field: str
    direction: SortDirection = SortDirection.DESC

    @field_validator("direction", mode="before")
    @classmethod
    def _normalize_direction(cls, value: Any) -> Any:
        if value is None:
            return SortDirection.DESC
        return str(value).strip().lower()

    @property
    def ascending(self) -> bool:
        return self.direction is SortDirection.ASC


class TimeRange(_IntentModel):
    """Relative ("30d"), absolute ISO date ("2026-01-01") or preset (LAST_MONTH)."""
    type: str
    value: str

    @model_validator(mode="before")
    @classmethod
    def _infer_type(cls, data: Any) -> Any:
        if isinstance(data, str):
            data = {"value": data}
        if not isinstance(data, dict):
            return data
        data = dict(data)
        value = str(data.get("value", "")).strip()
        data["value"] = value
        kind = str(data.get("type") or "").strip().lower()
        if not kind:
            if value.upper() in TIME_PRESETS:
                kind = "preset"
            elif value.lower().endswith("d") and value[:-1].isdigit():
                kind = "relative"
            else:
                kind = "absolute"
        if kind == "preset":
            data["value"] = value.upper()
        data["type"] = kind
        return data

    @field_validator("type")
    @classmethod
    def _check_type(cls, value: str) -> str:
        if value not in ("relative", "absolute", "preset"):
            raise ValueError(f"unknown time range type {value!r}")
        return value


class SearchIntent(_IntentModel):
    """Structured search request."""
    target_dataset: TargetDataset = Field(
        TargetDataset.SALES,
        validation_alias=AliasChoices("target_dataset", "targetDataset", "targetData", "target"),
    )
    filters: List[FilterSpec] = Field(default_factory=list)
    sort: Optional[SortSpec] = None
    limit: Optional[int] = None
    time_range: Optional[TimeRange] = Field(
        None, validation_alias=AliasChoices("time_range", "timeRange")
    )
    group_by: GroupDimension = Field(
        GroupDimension.PLATFORM, validation_alias=AliasChoices("group_by", "groupBy")
    )

    @field_validator("target_dataset", mode="before")
    @classmethod
    def _normalize_target(cls, value: Any) -> Any:
        if value is None:
            return TargetDataset.SALES
        if isinstance(value, TargetDataset):
            return value
        text = str(value).strip().lower().replace("_", "-")
        if text in ("deepdive", "deep-dive"):
            return TargetDataset.DEEP_DIVE
        return text

    @field_validator("group_by", mode="before")
    @classmethod
    def _normalize_group_by(cls, value: Any) -> Any:
        if value is None:
            return GroupDimension.PLATFORM
        return str(value).strip().lower()

    @field_validator("limit", mode="before")
    @classmethod
    def _drop_non_positive_limit(cls, value: Any) -> Any:
        if value is None or value == "":
            return None
        try:
            limit = int(value)
        except (TypeError, ValueError):
            raise ValueError(f"limit must be an integer, got {value!r}")
        return limit if limit > 0 else None

    @property
    def sort_field(self) -> str:
        """Active sort field, revenue when none was requested."""
        return self.sort.field if self.sort else "revenue"


def parse_intent(payload: Union[SearchIntent, Dict[str, Any]]) -> SearchIntent:
    """
    Build a SearchIntent from the translator's payload.

    Raises:
        IntentError: If the payload does not describe a valid intent
    """
    if isinstance(payload, SearchIntent):
        return payload
    if not isinstance(payload, dict):
        raise IntentError("Search intent must be a mapping", type(payload).__name__)
    try:
        return SearchIntent.model_validate(payload)
    except PydanticValidationError as exc:
        raise IntentError(
            "Invalid search intent",
            f"{exc.error_count()} validation error(s)",
            errors=exc.errors(),
        ) from exc
