from decimal import Decimal

from pydantic import BaseModel, Field, field_validator, model_validator

from faredesk.services.markup_resolver import ROLES


def _airline(value: str) -> str:
    value = value.strip().upper()
    if len(value) != 2 or not value.isalnum():
        raise ValueError("Airline code must be 2 characters")
    return value


def _airport(value: str | None) -> str:
    value = (value or "").strip().upper()
    if value and (len(value) != 3 or not value.isalpha()):
        raise ValueError("Airport code must be 3 letters")
    return value


def check_route(from_airport: str | None, to_airport: str | None):
    """A route rule names both airports; an airline-wide rule names neither."""
    if bool(from_airport) != bool(to_airport):
        raise ValueError("Route markups need both from and to airports")


def _role(value: str) -> str:
    value = value.strip().upper()
    if value not in ROLES:
        raise ValueError(f"Role must be one of {', '.join(ROLES)}")
    return value


class MarkupCreate(BaseModel):
    airline_code: str
    role: str = "USER"
    from_airport: str | None = ""
    to_airport: str | None = ""
    markup: Decimal = Field(ge=-100, le=100)

    @field_validator("airline_code")
    @classmethod
    def check_airline(cls, v: str) -> str:
        return _airline(v)

    @field_validator("role")
    @classmethod
    def check_role(cls, v: str) -> str:
        return _role(v)

    @field_validator("from_airport", "to_airport")
    @classmethod
    def check_airport(cls, v: str | None) -> str:
        return _airport(v)

    @model_validator(mode="after")
    def check_full_route(self):
        check_route(self.from_airport, self.to_airport)
        return self


class MarkupUpdate(BaseModel):
    role: str | None = None
    from_airport: str | None = None
    to_airport: str | None = None
    markup: Decimal | None = Field(default=None, ge=-100, le=100)
    is_active: bool | None = None

    @field_validator("role")
    @classmethod
    def check_role(cls, v: str | None) -> str | None:
        return _role(v) if v is not None else None

    @field_validator("from_airport", "to_airport")
    @classmethod
    def check_airport(cls, v: str | None) -> str | None:
        return _airport(v) if v is not None else None
