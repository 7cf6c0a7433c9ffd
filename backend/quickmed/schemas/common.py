"""Shared schema base and the response envelope."""
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """snake_case in Python, camelCase on the wire. Accepts either on input."""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


def ok(data: Any = None, results: Optional[int] = None) -> dict:
    """Success envelope used by every route."""
    body = {"status": "success"}
    if results is not None:
        body["results"] = results
    body["data"] = data
    return body


def ok_list(items: list) -> dict:
    return ok(items, results=len(items))
