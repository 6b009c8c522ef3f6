"""HTTP 入口：POST /chat。

python -m tariff_agent.api.app 以 uvicorn 启动。
"""

from typing import Any, Dict, List, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from tariff_agent.api import service
from tariff_agent.domain.exceptions import BusinessError
from tariff_agent.infrastructure.logging.logger import logger


class ChatRequestBody(BaseModel):
    messages: Optional[List[Dict[str, Any]]] = None
    stateObject: Optional[Dict[str, Any]] = None


app = FastAPI(title="tariff-agent")


@app.exception_handler(BusinessError)
async def business_error_handler(request: Request, exc: BusinessError) -> JSONResponse:
    if exc.http_status >= 500:
        summary = "Failed to generate response"
    else:
        summary = "Invalid request"
    return JSONResponse(status_code=exc.http_status, content={"error": summary, "details": exc.message})


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(status_code=400, content={"error": "Invalid request", "details": "Malformed request body"})


@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error", extra={"extra": {"path": request.url.path, "error": str(exc)}})
    return JSONResponse(
        status_code=500,
        content={
            "error": "Failed to generate response",
            "details": "An unexpected error occurred while processing your request",
        },
    )


@app.get("/health")
async def health() -> Dict[str, bool]:
    return {"ok": True}


@app.post("/chat")
async def chat(body: ChatRequestBody) -> Dict[str, Any]:
    return await service.run_chat(body.messages, body.stateObject)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)
