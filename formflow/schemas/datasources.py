from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


# --- Request schemas ---

class TestConnectionRequest(BaseModel):
    type: str = Field(..., min_length=1)
    # Either an object or the JSON string it was stored as
    config: Union[dict, str, None] = None


class QueryRequest(BaseModel):
    type: str = Field(..., min_length=1)
    config: Union[dict, str, None] = None
    query: str = ""


class FieldsRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    type: str = Field(..., min_length=1)
    config: Union[dict, str, None] = None
    table: Optional[str] = None
    selected_fields: Optional[list[str]] = Field(None, alias="selectedFields")


# --- Response schemas ---

class FieldResponse(BaseModel):
    name: str
    type: str
    selected: bool = False


class TableFieldsResponse(BaseModel):
    table: str
    fields: list[FieldResponse]


class QueryColumnResponse(BaseModel):
    name: str
    type: Optional[str] = None


class ConnectionTestResponse(BaseModel):
    success: bool
    message: str
    info: Optional[dict[str, Any]] = None
    tables: Optional[list[str]] = None
    fields: Optional[dict[str, list[FieldResponse]]] = None
    error: Optional[str] = None


class QueryResponse(BaseModel):
    rows: list[dict[str, Any]]
    fields: Optional[list[QueryColumnResponse]] = None
    error: Optional[str] = None
