"""
User Settings Models

SettingsState is the single owned object holding user preferences for a
session. It is only mutated through SettingsSynchronizer.update_field so
that the load guard and the debounce pipeline cannot be bypassed.

DESIGN DECISION: The persisted document is always a full snapshot, never
a diff. Loading adopts whatever fields the document carries on top of the
built-in defaults.
"""

from decimal import Decimal
from enum import Enum
from typing import Any

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
)


DEFAULT_CATEGORIES = (
    "Food",
    "Transport",
    "Shopping",
    "Utilities",
    "Salary",
    "Rent",
    "Entertainment",
    "Other",
)

DEFAULT_DISPLAY_NAME = "User"

MAX_CATEGORY_LENGTH = 100

DEFAULT_VISUAL_TOGGLES = {
    "dark_mode": False,
    "show_receipts": True,
}


class LoadState(str, Enum):
    """
    Synchronizer lifecycle.
    
    Writes to the remote store are only allowed in LOADED.
    """
    NOT_LOADED = "not_loaded"
    LOADING = "loading"
    LOADED = "loaded"
    LOAD_FAILED = "load_failed"


class BudgetSettings(BaseModel):
    """Monthly spending budget configuration."""
    model_config = ConfigDict(validate_assignment=True)
    
    enabled: bool = False
    limit: Decimal = Field(
        default=Decimal("10000"),
        ge=0,
        description="Budget limit for the period"
    )
    alert_threshold_percent: int = Field(
        default=80,
        ge=0,
        le=100,
        description="Alert once this share of the limit is spent"
    )


def normalize_categories(values) -> list[str]:
    """Strip, drop empties and deduplicate keeping first occurrence."""
    seen = set()
    result = []
    for value in values:
        name = str(value).strip()
        if not name or name in seen:
            continue
        seen.add(name)
        result.append(name)
    return result


class SettingsState(BaseModel):
    """
    User preferences for one signed-in session.
    
    Created from built-in defaults at session start, overwritten once by a
    successful remote load, then mutated incrementally.
    """
    model_config = ConfigDict(validate_assignment=True)
    
    categories: list[str] = Field(
        default_factory=lambda: list(DEFAULT_CATEGORIES),
        description="Most-recent-first, deduplicated"
    )
    budget: BudgetSettings = Field(default_factory=BudgetSettings)
    display_name: str = DEFAULT_DISPLAY_NAME
    visual_toggles: dict[str, bool] = Field(
        default_factory=lambda: dict(DEFAULT_VISUAL_TOGGLES)
    )
    load_state: LoadState = Field(
        default=LoadState.NOT_LOADED,
        exclude=True,
        description="Governs whether writes are allowed; never persisted"
    )
    
    @field_validator('categories', mode='before')
    @classmethod
    def dedupe_categories(cls, v):
        if isinstance(v, (list, tuple)):
            return normalize_categories(v)
        return v
    
    @classmethod
    def defaults(cls) -> "SettingsState":
        return cls()
    
    @classmethod
    def from_document(cls, document: Any) -> "SettingsState":
        """
        Build state from a remote document.
        
        Present fields are adopted, absent fields keep the built-in
        defaults, unknown fields are ignored.
        
        Raises:
            ValueError: If the document is not a mapping or a field is invalid
        """
        if not isinstance(document, dict):
            raise ValueError(
                f"Settings document must be a mapping, got {type(document).__name__}"
            )
        
        fields = {}
        for name in PERSISTED_FIELDS:
            if name in document and document[name] is not None:
                fields[name] = document[name]
        
        # Partial budget and toggle objects keep defaults for missing keys
        if isinstance(fields.get("budget"), dict):
            fields["budget"] = {
                **BudgetSettings().model_dump(),
                **fields["budget"],
            }
        if isinstance(fields.get("visual_toggles"), dict):
            fields["visual_toggles"] = {
                **DEFAULT_VISUAL_TOGGLES,
                **fields["visual_toggles"],
            }
        
        return cls.model_validate(fields)
    
    def to_document(self) -> dict:
        """Full JSON-safe snapshot for the remote store."""
        return self.model_dump(mode="json")
    
    def snapshot(self) -> "SettingsState":
        """Independent copy safe to hand to readers or writers."""
        return self.model_copy(deep=True)


PERSISTED_FIELDS = ("categories", "budget", "display_name", "visual_toggles")


class CategoryUsed(BaseModel):
    """
    Event: a transaction was recorded under `category`.
    
    The transaction flow emits this instead of touching the category list.
    """
    model_config = ConfigDict(str_strip_whitespace=True, frozen=True)
    
    category: str = Field(..., min_length=1, max_length=MAX_CATEGORY_LENGTH)
