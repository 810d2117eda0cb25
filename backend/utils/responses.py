from typing import Any, Optional
from fastapi.responses import JSONResponse

NO_STORE_HEADERS = {
    "Cache-Control": "no-store, no-cache, must-revalidate, max-age=0",
    "Pragma": "no-cache",
    "Expires": "0",
}

def no_store_json(data, status_code: int = 200, headers: Optional[dict] = None):
    """Return JSONResponse with no-store caching headers."""
    return JSONResponse(content=data, status_code=status_code, headers={**NO_STORE_HEADERS, **(headers or {})})

def success_json(message: str, data: Any = None, status_code: int = 200):
    body = {"success": True, "message": message}
    if data is not None:
        body["data"] = data
    return no_store_json(body, status_code=status_code)

def failure_json(message: str, status_code: int, error: Optional[str] = None, headers: Optional[dict] = None):
    body = {"success": False, "message": message}
    if error:
        body["error"] = error
    return no_store_json(body, status_code=status_code, headers=headers)
