"""Structured inputs validated with pydantic.

Flat scalar parameters go through :mod:`discord_mcp.tools.param_schema`;
nested objects (embeds, permission overwrites, role settings) are modelled
here. :func:`parse_model` converts a ``ValidationError`` into the same
``invalid_input`` failure the schema engine produces.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, List, Literal, Optional, Sequence, Tuple, Type, TypeVar

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from discord_mcp.core.capabilities import normalize_permission_names
from discord_mcp.core.errors.domain import DomainError

M = TypeVar("M", bound=BaseModel)

# Combined character limit across title, description, fields, footer, author.
EMBED_TOTAL_LIMIT = 6000


class EmbedAuthor(BaseModel):
    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    name: str = Field(max_length=256)
    url: Optional[str] = None
    icon_url: Optional[str] = Field(default=None, alias="iconURL")


class EmbedFooter(BaseModel):
    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    text: str = Field(max_length=2048)
    icon_url: Optional[str] = Field(default=None, alias="iconURL")


class EmbedField(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: str = Field(min_length=1, max_length=256)
    value: str = Field(min_length=1, max_length=1024)
    inline: bool = False


class EmbedInput(BaseModel):
    """A rich embed as accepted by the messaging tools."""

    model_config = ConfigDict(extra="forbid")

    title: Optional[str] = Field(default=None, max_length=256)
    description: Optional[str] = Field(default=None, max_length=4096)
    url: Optional[str] = None
    color: Optional[int] = Field(default=None, ge=0, le=0xFFFFFF, description="RGB color as an integer")
    image: Optional[str] = Field(default=None, description="Large image URL at the bottom of the embed")
    thumbnail: Optional[str] = Field(default=None, description="Small image URL at the top right")
    author: Optional[EmbedAuthor] = None
    footer: Optional[EmbedFooter] = None
    fields: List[EmbedField] = Field(default_factory=list, max_length=25)
    timestamp: bool = Field(default=False, description="Stamp the embed with the current time")

    @field_validator("url", "image", "thumbnail")
    @classmethod
    def _http_url(cls, value: Optional[str]) -> Optional[str]:
        if value is not None and not value.startswith(("http://", "https://")):
            raise ValueError("must be an http(s) URL")
        return value

    @model_validator(mode="after")
    def _not_empty_and_within_limit(self) -> "EmbedInput":
        if not (self.title or self.description or self.fields or self.image or self.author):
            raise ValueError("embed needs at least a title, description, field, image, or author")
        total = sum(
            len(text or "")
            for text in (
                self.title,
                self.description,
                self.author.name if self.author else None,
                self.footer.text if self.footer else None,
            )
        ) + sum(len(f.name) + len(f.value) for f in self.fields)
        if total > EMBED_TOTAL_LIMIT:
            raise ValueError(f"embed text totals {total} characters; the limit is {EMBED_TOTAL_LIMIT}")
        return self

    def to_payload(self, *, now: Optional[datetime] = None) -> Dict[str, Any]:
        """Render in the platform's embed dictionary format."""
        payload: Dict[str, Any] = {"type": "rich"}
        for key in ("title", "description", "url", "color"):
            value = getattr(self, key)
            if value is not None:
                payload[key] = value
        if self.image:
            payload["image"] = {"url": self.image}
        if self.thumbnail:
            payload["thumbnail"] = {"url": self.thumbnail}
        if self.author:
            payload["author"] = {"name": self.author.name}
            if self.author.url:
                payload["author"]["url"] = self.author.url
            if self.author.icon_url:
                payload["author"]["icon_url"] = self.author.icon_url
        if self.footer:
            payload["footer"] = {"text": self.footer.text}
            if self.footer.icon_url:
                payload["footer"]["icon_url"] = self.footer.icon_url
        if self.fields:
            payload["fields"] = [f.model_dump() for f in self.fields]
        if self.timestamp:
            payload["timestamp"] = (now or datetime.now(timezone.utc)).isoformat()
        return payload


class PermissionOverwriteInput(BaseModel):
    """Allow/deny lists for one role or member on one channel.

    Permission names are accepted in any spelling and normalised to flag
    names; unknown names and names present in both lists are rejected.
    """

    model_config = ConfigDict(extra="forbid")

    target_type: Literal["role", "member"]
    allow: Tuple[str, ...] = ()
    deny: Tuple[str, ...] = ()

    @field_validator("allow", "deny", mode="after")
    @classmethod
    def _known_flags(cls, names: Tuple[str, ...]) -> Tuple[str, ...]:
        flags, unknown = normalize_permission_names(names)
        if unknown:
            raise ValueError(f"unknown permission(s): {', '.join(unknown)}")
        return tuple(sorted(flags))

    @model_validator(mode="after")
    def _disjoint(self) -> "PermissionOverwriteInput":
        overlap = set(self.allow) & set(self.deny)
        if overlap:
            raise ValueError(f"{', '.join(sorted(overlap))} cannot be both allowed and denied")
        if not self.allow and not self.deny:
            raise ValueError("provide at least one permission to allow or deny")
        return self


class RoleInput(BaseModel):
    """Settings for a new role."""

    model_config = ConfigDict(extra="forbid")

    name: str = Field(min_length=1, max_length=100)
    color: Optional[int] = Field(default=None, ge=0, le=0xFFFFFF)
    hoist: bool = False
    mentionable: bool = False
    permissions: Tuple[str, ...] = ()

    @field_validator("permissions", mode="after")
    @classmethod
    def _known_flags(cls, names: Tuple[str, ...]) -> Tuple[str, ...]:
        flags, unknown = normalize_permission_names(names)
        if unknown:
            raise ValueError(f"unknown permission(s): {', '.join(unknown)}")
        return tuple(sorted(flags))


def _first_error(exc: ValidationError, field_name: str) -> DomainError:
    error = exc.errors()[0]
    location = ".".join(str(part) for part in error.get("loc", ()))
    where = f"{field_name}.{location}" if location else field_name
    message = str(error.get("msg", "invalid value"))
    if message.startswith("Value error, "):
        message = message[len("Value error, ") :]
    return DomainError.invalid_input(where, message)


def parse_model(model: Type[M], data: Any, field_name: str) -> Tuple[Optional[M], Optional[DomainError]]:
    """Validate ``data`` as ``model``; returns ``(instance, error)``."""
    try:
        return model.model_validate(data), None
    except ValidationError as exc:
        return None, _first_error(exc, field_name)


def parse_embeds(
    raw: Optional[Sequence[Any]], field_name: str = "embeds"
) -> Tuple[Optional[List[Dict[str, Any]]], Optional[DomainError]]:
    """Validate embed dictionaries and render them for the gateway.

    Returns ``([], None)`` when ``raw`` is empty or ``None``.
    """
    payloads: List[Dict[str, Any]] = []
    for index, item in enumerate(raw or ()):
        embed, error = parse_model(EmbedInput, item, f"{field_name}[{index}]")
        if error:
            return None, error
        assert embed is not None
        payloads.append(embed.to_payload())
    return payloads, None
