from typing import Optional

from fastapi import status
from src.domain.result import Error


class ClientError(Exception):
    def __init__(
        self,
        base_error: Error,
        status_code: int = status.HTTP_400_BAD_REQUEST,
        headers: Optional[dict] = None,
    ):
        self.base_error = base_error
        self.status_code = status_code
        self.headers = headers
        super().__init__(base_error.message)


class ServerError(Exception):
    def __init__(self, base_error: Error):
        self.base_error = base_error
        super().__init__(base_error.message)


def error_body(error: Error) -> dict:
    """Stable client-visible envelope for every failure."""
    error_dict = {"code": error.code, "message": error.message}
    if error.details:
        error_dict["details"] = list(error.details)
    return {"success": False, "message": error.message, "error": error_dict}
