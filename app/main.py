import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from sqlalchemy.exc import SQLAlchemyError

from app.core.catalog import describe, load_schema
from app.core.config import settings
from app.core.database import engine
from app.core.exceptions import ExplorerError, InvalidBodyError, SchemaLoadError
from app.core.responses import ExplorerJSONResponse, error_response
from app.api.router import api_router

logging.basicConfig(level=settings.LOG_LEVEL)
logger = logging.getLogger(__name__)


# Build the schema snapshot before serving and close the engine on shutdown
@asynccontextmanager
async def lifespan(app: FastAPI):
    # No partial catalog: a failed introspection stops the startup
    try:
        async with engine.connect() as conn:
            app.state.schema = await load_schema(conn)
    except (SchemaLoadError, SQLAlchemyError) as error:
        logger.error(f"Schema introspection failed during startup: {error}")
        await engine.dispose()
        raise

    logger.info(f"Discovered {len(app.state.schema)} tables")
    logger.debug(f"Schema: {describe(app.state.schema)}")

    yield
    await engine.dispose()


app = FastAPI(
    title="DB Explorer API",
    lifespan=lifespan,
    default_response_class=ExplorerJSONResponse,
)

# Include the master router containing all our endpoints
app.include_router(api_router)


@app.exception_handler(ExplorerError)
async def explorer_error_handler(request: Request, error: ExplorerError):
    return error_response(error.status_code, error.message)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, error: RequestValidationError):
    invalid = InvalidBodyError()
    return error_response(invalid.status_code, invalid.message)


# Anything the driver raises that nothing above classified
@app.exception_handler(SQLAlchemyError)
async def backend_error_handler(request: Request, error: SQLAlchemyError):
    logger.error(f"{request.method} {request.url.path} failed: {error}")
    message = str(getattr(error, "orig", None) or error)
    return error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, message)
