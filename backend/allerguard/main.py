from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from allerguard.api.routes import router as api_router
from allerguard.errors import AuthError, InputValidationError
from allerguard.logging import configure_logging, get_logger
from allerguard.services.llm.dspy_client import configure_dspy
from allerguard.storage.db import create_db_and_tables

app = FastAPI(title="Allergy Guard API")
logger = get_logger(__name__)

_REQUIRED_FIELD_MESSAGES = {
    "ingredients": "Ingredients text is required",
    "ingredient": "Ingredient is required",
}

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.on_event("startup")
def on_startup() -> None:
    configure_logging()
    logger.info("startup: configuring services")
    configure_dspy()
    create_db_and_tables()


@app.exception_handler(AuthError)
async def handle_auth_error(request: Request, exc: AuthError) -> JSONResponse:
    return JSONResponse(status_code=401, content={"error": "Unauthorized"})


@app.exception_handler(InputValidationError)
async def handle_input_error(request: Request, exc: InputValidationError) -> JSONResponse:
    return JSONResponse(status_code=400, content={"error": str(exc)})


@app.exception_handler(RequestValidationError)
async def handle_request_validation(request: Request, exc: RequestValidationError) -> JSONResponse:
    message = "Invalid request"
    for err in exc.errors():
        field = next((f for f in err.get("loc", ()) if f in _REQUIRED_FIELD_MESSAGES), None)
        if field:
            message = _REQUIRED_FIELD_MESSAGES[field]
            break
    logger.info("request.invalid path=%s errors=%s", request.url.path, len(exc.errors()))
    return JSONResponse(status_code=400, content={"error": message})


app.include_router(api_router)
