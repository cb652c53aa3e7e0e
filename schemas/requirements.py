"""
Pydantic schema for the business requirements that seed a generation run.

Requirements are validated exactly once, at the start of a run. Anything
malformed is reported as ConfigInvalid before any stage executes.
"""
import re
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from pydantic.alias_generators import to_camel

from schemas.errors import ConfigInvalid

HOME_PAGE_NAMES = {"home", "index", "homepage", "home page"}


def slugify(value: str) -> str:
    """Lowercase, hyphen-separated slug."""
    slug = re.sub(r"[^a-z0-9]+", "-", value.lower()).strip("-")
    return slug or "page"


def page_slug(page_name: str) -> str:
    """Map a requested page name to its file slug. Home becomes index."""
    if page_name.strip().lower() in HOME_PAGE_NAMES:
        return "index"
    return slugify(page_name)


class Requirements(BaseModel):
    """Immutable input for one generation run."""

    model_config = ConfigDict(
        frozen=True,
        populate_by_name=True,
        alias_generator=to_camel,
        str_strip_whitespace=True,
        extra="ignore",
    )

    business_name: str = Field(..., min_length=1, max_length=120)
    industry: str = Field(..., min_length=1, max_length=120)
    location: Optional[str] = None
    target_audiences: list[str] = Field(default_factory=list)
    tone: Optional[str] = None
    services: list[str] = Field(default_factory=list)
    pages: list[str] = Field(default_factory=lambda: ["Home"])
    features: list[str] = Field(default_factory=list)
    description: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None

    @field_validator("target_audiences", "services", "features")
    @classmethod
    def drop_blank_entries(cls, value: list[str]) -> list[str]:
        return [v.strip() for v in value if v and v.strip()]

    @field_validator("pages")
    @classmethod
    def validate_pages(cls, value: list[str]) -> list[str]:
        if not value:
            raise ValueError("at least one page is required")
        cleaned = []
        seen = set()
        for name in value:
            name = (name or "").strip()
            if not name:
                raise ValueError("page names must not be blank")
            slug = page_slug(name)
            if slug in seen:
                raise ValueError(f"duplicate page: {name}")
            seen.add(slug)
            cleaned.append(name)
        return cleaned

    @field_validator("tone")
    @classmethod
    def normalize_tone(cls, value: Optional[str]) -> Optional[str]:
        return value.lower() if value else None

    @property
    def project_slug(self) -> str:
        return slugify(self.business_name)[:64].rstrip("-")

    @property
    def page_slugs(self) -> list[str]:
        return [page_slug(p) for p in self.pages]

    def to_dict(self) -> dict:
        return self.model_dump(by_alias=True)


def parse_requirements(data: Any) -> Requirements:
    """
    Validate raw input into Requirements.

    Raises:
        ConfigInvalid: if the payload is not a valid requirements object.
    """
    if isinstance(data, Requirements):
        return data
    if not isinstance(data, dict):
        raise ConfigInvalid(
            f"Requirements must be an object, got {type(data).__name__}",
            errors=[{"loc": [], "msg": "expected an object"}],
        )
    try:
        return Requirements.model_validate(data)
    except ValidationError as e:
        errors = [
            {"loc": list(err["loc"]), "msg": err["msg"]}
            for err in e.errors()
        ]
        raise ConfigInvalid("Invalid requirements", errors=errors) from e
