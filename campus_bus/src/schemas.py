from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class RequestInfo(BaseModel):
    method: str
    path: str
    app_id: int


class HealthStatus(BaseModel):
    status: str
    version: str


class ErrorResponse(BaseModel):
    detail: str


class CamelModel(BaseModel):
    """
    Base of every JSON body exchanged with the mobile apps.

    Fields are declared in snake_case and travel as camelCase (`trip_id` ⇄ `tripId`).
    Both spellings are accepted on input.
    """

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, from_attributes=True
    )
