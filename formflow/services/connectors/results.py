from dataclasses import dataclass, field
from typing import Any, Optional


@dataclass
class FieldDescriptor:
    """One column/property of a table or collection."""
    name: str
    type: str       # engine vocabulary, or text/number/datetime/boolean for inferred sources
    selected: bool = False

    def to_dict(self) -> dict:
        return {"name": self.name, "type": self.type, "selected": self.selected}


@dataclass
class SchemaSnapshot:
    """Tables and per-table fields discovered while testing a connection."""
    tables: list[str] = field(default_factory=list)
    fields: dict[str, list[FieldDescriptor]] = field(default_factory=dict)


@dataclass
class ConnectionTestResult:
    """Outcome of a connection test. Failures never carry tables or fields."""
    success: bool
    message: str
    info: Optional[dict] = None
    tables: Optional[list[str]] = None
    fields: Optional[dict[str, list[FieldDescriptor]]] = None
    error: Optional[BaseException] = None

    @classmethod
    def ok(
        cls,
        message: str,
        info: Optional[dict] = None,
        schema: Optional[SchemaSnapshot] = None,
    ) -> "ConnectionTestResult":
        schema = schema or SchemaSnapshot()
        return cls(
            success=True,
            message=message,
            info=info,
            tables=list(schema.tables),
            fields=dict(schema.fields),
        )

    @classmethod
    def failure(cls, message: str, error: Optional[BaseException] = None) -> "ConnectionTestResult":
        return cls(success=False, message=message, error=error)

    def to_dict(self) -> dict:
        data: dict[str, Any] = {"success": self.success, "message": self.message}
        if self.info is not None:
            data["info"] = self.info
        if self.tables is not None:
            data["tables"] = self.tables
        if self.fields is not None:
            data["fields"] = {
                table: [f.to_dict() for f in fields]
                for table, fields in self.fields.items()
            }
        if self.error is not None:
            data["error"] = str(self.error) or type(self.error).__name__
        return data


@dataclass
class QueryColumn:
    """Column reported by the engine for an executed statement."""
    name: str
    type: Optional[str] = None

    def to_dict(self) -> dict:
        return {"name": self.name, "type": self.type}


@dataclass
class QueryResult:
    """Outcome of a query. When error is set, rows is empty."""
    rows: list[dict] = field(default_factory=list)
    fields: Optional[list[QueryColumn]] = None
    error: Optional[BaseException] = None

    @classmethod
    def failed(cls, error: BaseException) -> "QueryResult":
        return cls(rows=[], fields=None, error=error)

    def to_dict(self) -> dict:
        data: dict[str, Any] = {"rows": self.rows}
        if self.fields is not None:
            data["fields"] = [f.to_dict() for f in self.fields]
        if self.error is not None:
            data["error"] = str(self.error) or type(self.error).__name__
        return data
