from typing import Union

from pydantic import BaseModel, Field, field_serializer


class Country(BaseModel):
    # Two-character ISO 3166-1 country code, empty when the database has none.
    iso_code: str = Field("", description="ISO 3166-1 alpha-2 country code")


class Location(BaseModel):
    latitude: float = Field(0.0, description="Approximate latitude in degrees")
    longitude: float = Field(0.0, description="Approximate longitude in degrees")
    # 67% confidence radius around latitude/longitude.
    accuracy_radius: int = Field(0, description="Accuracy radius in kilometers")

    @field_serializer("latitude", "longitude", when_used="json")
    def _shortest_number(self, value: float) -> Union[int, float]:
        # whole degrees are written without a fraction: 37, not 37.0
        return int(value) if value.is_integer() else value


class LocationRecord(BaseModel):
    """Minimal location projection decoded from a MaxMind DB record.

    The nested layout is the response layout, so ``model_dump_json()`` is the
    wire format. Records are only populated by a successful decode; a zeroed
    record never stands in for a failed lookup.
    """

    country: Country = Field(default_factory=Country)
    location: Location = Field(default_factory=Location)

    def to_json_bytes(self) -> bytes:
        return self.model_dump_json().encode("utf-8")
