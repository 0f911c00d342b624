from typing import Any

from fastapi.responses import JSONResponse


class ExplorerJSONResponse(JSONResponse):
    """Compact JSON body terminated by a newline."""

    def render(self, content: Any) -> bytes:
        return super().render(content) + b"\n"


def error_response(status_code: int, message: str) -> ExplorerJSONResponse:
    return ExplorerJSONResponse(status_code=status_code, content={"error": message})
