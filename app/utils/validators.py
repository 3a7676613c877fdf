"""Validation utilities and types used across the application."""

from bson import ObjectId

from app.core.exceptions import BadRequestException


class PyObjectId(ObjectId):
    """Custom ObjectId type for Pydantic models."""

    @classmethod
    def __get_pydantic_core_schema__(cls, source_type, handler):
        from pydantic_core import core_schema

        return core_schema.no_info_plain_validator_function(cls.validate)

    @classmethod
    def validate(cls, v):
        if not ObjectId.is_valid(v):
            raise ValueError("Invalid objectid")
        return ObjectId(v)

    @classmethod
    def __get_pydantic_json_schema__(cls, core_schema, handler):
        return {"type": "string"}


def parse_object_id(value: str, field: str = "id") -> ObjectId:
    """
    Convert a client supplied identifier into an ObjectId.

    Raises:
        BadRequestException: If the value is not a valid ObjectId
    """
    if not isinstance(value, str | ObjectId) or not ObjectId.is_valid(value):
        raise BadRequestException(f"Invalid {field}", details={"field": field})
    return ObjectId(value)


def email_local_part(email: str | None) -> str | None:
    if not email or "@" not in email:
        return None
    return email.split("@", 1)[0] or None
