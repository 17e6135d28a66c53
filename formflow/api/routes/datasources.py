import logging

from fastapi import APIRouter, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from formflow.core.exceptions import ConnectorError, ValidationError
from formflow.core.rate_limit import rate_limit_connection_test
from formflow.schemas.datasources import (
    ConnectionTestResponse,
    FieldResponse,
    FieldsRequest,
    QueryRequest,
    QueryResponse,
    TableFieldsResponse,
    TestConnectionRequest,
)
from formflow.services.datasource_service import DataSourceService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/datasources", tags=["Data Sources"])


@router.post(
    "/test-connection",
    response_model=ConnectionTestResponse,
    responses={400: {"model": ConnectionTestResponse}},
)
@rate_limit_connection_test()
async def test_connection(request: Request, data: TestConnectionRequest):
    """
    Test a data source configuration and return its tables and fields.
    Failures come back as 400 with success=false and a message.
    """
    result = await DataSourceService.test_connection(data.type, data.config)
    return JSONResponse(
        status_code=status.HTTP_200_OK if result.success else status.HTTP_400_BAD_REQUEST,
        content=jsonable_encoder(result.to_dict()),
    )


@router.post(
    "/query",
    response_model=QueryResponse,
    responses={400: {"model": QueryResponse}},
)
async def execute_query(data: QueryRequest):
    """Run a native query (SQL, JSON filter, column list, OData options)."""
    result = await DataSourceService.execute_query(data.type, data.config, data.query)
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST if result.error else status.HTTP_200_OK,
        content=jsonable_encoder(result.to_dict()),
    )


@router.post("/fields", response_model=TableFieldsResponse)
async def get_table_fields(data: FieldsRequest):
    """Refresh the field list for one table of a data source."""
    try:
        table, fields = await DataSourceService.get_table_fields(
            data.type, data.config, table=data.table, selected_fields=data.selected_fields,
        )
    except ConnectorError as e:
        logger.warning(f"Field refresh failed for {data.type}: {e}")
        raise ValidationError(str(e) or type(e).__name__)

    return TableFieldsResponse(
        table=table,
        fields=[FieldResponse(**f.to_dict()) for f in fields],
    )
