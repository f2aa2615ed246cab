from typing import Generic, TypeVar, Optional, List
from pydantic import BaseModel

T = TypeVar("T")

class APIResponse(BaseModel, Generic[T]):
    """
    Standard API response wrapper.
    """
    message: str = "success"
    data: Optional[T] = None

class ValidationErrorDetail(BaseModel):
    """
    Structure for a single validation error.
    """
    field: str
    message: str

class ValidationErrorResponse(BaseModel):
    """
    Response schema for validation errors (400 Bad Request).
    """
    message: str = "Validation Error"
    data: List[ValidationErrorDetail]

    model_config = {
        "json_schema_extra": {
            "example": {
                "message": "Validation Error",
                "data": [
                    {
                        "field": "creator_pubkey",
                        "message": "Value error, creator_pubkey must be 66 hex characters (33 bytes)"
                    },
                    {
                        "field": "contribution_per_round",
                        "message": "Field required"
                    }
                ]
            }
        }
    }

class CircleErrorResponse(BaseModel):
    """
    Response schema for a rejected circle operation (400 or 404).

    ``data.code`` names the failure; the remaining keys carry its context.
    """
    message: str
    data: dict

    model_config = {
        "json_schema_extra": {
            "example": {
                "message": "Round is not fully funded yet (1/2 contributions)",
                "data": {
                    "code": "round_not_funded",
                    "funded": 1,
                    "required": 2
                }
            }
        }
    }

class HTTPErrorResponse(BaseModel):
    """
    Standard schema for other HTTP errors (404, 409, 429).
    """
    message: str
    data: dict = {}
