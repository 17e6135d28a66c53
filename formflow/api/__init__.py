from formflow.api.routes.datasources import router as datasources_router

__all__ = ["datasources_router"]
