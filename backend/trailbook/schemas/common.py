"""Uniform response envelope."""

from typing import Any, Dict

from pydantic import BaseModel


def envelope(message: str, data: Any = None) -> Dict[str, Any]:
    """
    Build the ``{success, message, data}`` wrapper returned by every HTTP
    endpoint; pydantic models in ``data`` are serialized by alias.
    """
    if isinstance(data, BaseModel):
        data = data.model_dump(by_alias=True, mode="json")
    elif isinstance(data, list):
        data = [
            item.model_dump(by_alias=True, mode="json") if isinstance(item, BaseModel) else item
            for item in data
        ]
    return {"success": True, "message": message, "data": data}
