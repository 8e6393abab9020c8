# ABOUTME: TypeAdapter-backed SQLAlchemy type for storing pydantic models in JSON columns
# ABOUTME: Validates rules on the way out of the database so stored manifests are always well-formed

from __future__ import annotations

from typing import Any

from pydantic import TypeAdapter
from sqlalchemy import JSON, TypeDecorator
from sqlalchemy.engine import Dialect


class PydanticJson(TypeDecorator[Any]):
    """
    A SQLAlchemy TypeDecorator that round-trips a pydantic type through a JSON
    column. Values are dumped in JSON mode using field aliases and validated
    with the same TypeAdapter when loaded.

    See: https://github.com/fastapi/sqlmodel/issues/63#issuecomment-2727480036
    """

    impl = JSON
    cache_ok = True

    def __init__(self, pydantic_type: type, *args: Any, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self.pydantic_type = pydantic_type
        self.type_adapter = TypeAdapter(pydantic_type)

    def coerce_compared_value(self, op: Any, value: Any) -> Any:
        return self.impl_instance.coerce_compared_value(op, value)  # type: ignore[misc]

    def process_bind_param(self, value: Any, dialect: Dialect) -> Any:
        if value is None:
            return None
        return self.type_adapter.dump_python(value, mode="json", by_alias=True)

    def process_result_value(self, value: Any, dialect: Dialect) -> Any:
        if value is None:
            return None
        return self.type_adapter.validate_python(value)
