from pydantic import AliasChoices, BaseModel, ConfigDict, Field

class Station(BaseModel):
    """Tide monitoring station from the static catalog."""
    id: str = Field(..., validation_alias=AliasChoices("id", "station_id"), description="CO-OPS station identifier")
    name: str = Field(..., description="Station name")
    region: str = Field("", validation_alias=AliasChoices("region", "state"), description="State or region")

    model_config = ConfigDict(frozen=True)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Station):
            return NotImplemented
        return self.id == other.id

    def __hash__(self) -> int:
        return hash(self.id)
