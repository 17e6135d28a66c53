from formflow.services.datasource_service import DataSourceService

__all__ = ["DataSourceService"]
