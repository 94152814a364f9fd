"""Pydantic models describing FlickPick API payloads."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator


class _ApiModel(BaseModel):
    """Frozen model accepting either Python field names or API aliases."""

    model_config = ConfigDict(populate_by_name=True, frozen=True, extra="ignore")


class Director(_ApiModel):
    name: str = Field(alias="Name")
    bio: str | None = Field(default=None, alias="Bio")
    birth_year: int | None = Field(default=None, alias="BirthYear")
    death_year: int | None = Field(default=None, alias="DeathYear")
    movies: list[str] = Field(default_factory=list, alias="Movies")


class Genre(_ApiModel):
    name: str = Field(alias="Name")
    description: str | None = Field(default=None, alias="Description")


class Movie(_ApiModel):
    """Immutable snapshot of a catalog entry."""

    id: str = Field(alias="_id")
    title: str = Field(alias="Title")
    description: str | None = Field(default=None, alias="Description")
    year: int | None = Field(default=None, alias="Year")
    image_path: str | None = Field(default=None, alias="ImagePath")
    featured: bool = Field(default=False, alias="Featured")
    director: Director = Field(alias="Director")
    genre: Genre = Field(alias="Genre")


class Profile(_ApiModel):
    """The signed-in user as returned by ``/login`` and ``/users/{name}``."""

    id: str | None = Field(default=None, alias="_id")
    name: str = Field(alias="Name")
    password: str | None = Field(default=None, alias="Password")
    email: str | None = Field(default=None, alias="Email")
    birthday: str | None = Field(default=None, alias="Birthday")
    favorite_movie_ids: frozenset[str] = Field(
        default_factory=frozenset, alias="FavoriteMovies"
    )

    @field_validator("favorite_movie_ids", mode="before")
    @classmethod
    def _coerce_favorites(cls, value: object) -> object:
        # The API sends null for users that never saved a favorite.
        if value is None:
            return frozenset()
        return value

    @field_serializer("favorite_movie_ids")
    def _serialize_favorites(self, value: frozenset[str]) -> list[str]:
        return sorted(value)

    def to_storage(self) -> dict[str, Any]:
        """Return the JSON object persisted under the ``user`` key."""

        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class ProfileUpdate(_ApiModel):
    """Partial profile edit sent to ``PUT /users/{name}``."""

    name: str | None = Field(default=None, alias="Name")
    password: str | None = Field(default=None, alias="Password")
    email: str | None = Field(default=None, alias="Email")
    birthday: str | None = Field(default=None, alias="Birthday")

    @classmethod
    def from_profile(cls, profile: Profile) -> "ProfileUpdate":
        """Build the patch carrying a profile's editable fields."""

        return cls(
            name=profile.name,
            password=profile.password,
            email=profile.email,
            birthday=profile.birthday,
        )

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)

    def is_empty(self) -> bool:
        return not self.to_payload()


class Credentials(_ApiModel):
    name: str = Field(alias="Name")
    password: str = Field(alias="Password")

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True)


class Registration(_ApiModel):
    name: str = Field(alias="Name")
    password: str = Field(alias="Password")
    email: str = Field(alias="Email")
    birthday: str | None = Field(default=None, alias="Birthday")

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)

    def credentials(self) -> Credentials:
        return Credentials(name=self.name, password=self.password)
