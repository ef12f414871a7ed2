import os
import time
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from dotenv import load_dotenv
from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.config.openai_llm import AzureOpenAIClient
from app.config.settings import settings
from app.routers import field_bindings, files, generation, knowledge
from app.services.document_store import DocumentStore
from app.utils import logger
from app.utils.s3_utils import S3BlobStore


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Anything already placed on app.state (tests) is used as-is
    state = app.state
    owned_llm = None

    if getattr(state, "document_store", None) is None:
        state.document_store = DocumentStore(settings.DATABASE_URL)
        state.document_store.initialize()

    if getattr(state, "blob_store", None) is None:
        state.blob_store = S3BlobStore(settings.bucket_name, settings.aws_region, settings.s3_endpoint_url)
        state.blob_store.ensure_bucket()

    if getattr(state, "llm_client", None) is None:
        owned_llm = AzureOpenAIClient(
            endpoint=settings.azure_openai_endpoint,
            api_key=settings.azure_openai_api_key,
            deployment_name=settings.azure_openai_deployment_name,
            api_version=settings.azure_openai_api_version,
            timeout=settings.llm_timeout_seconds,
            temperature=settings.llm_temperature,
        )
        state.llm_client = owned_llm

    logger.info(f"O9 Action Button Generator started (env={settings.env})")
    yield

    if owned_llm is not None:
        await owned_llm.aclose()
    logger.info("O9 Action Button Generator shut down")


app = FastAPI(
    title="O9 Action Button Generator",
    description="Generates o9 Action Button JavaScript modules from business logic and field bindings",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"]
)

app.include_router(generation.router)
app.include_router(field_bindings.router)
app.include_router(knowledge.router)
app.include_router(files.router)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    # Malformed input is a client error like any other missing field
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": jsonable_encoder(exc.errors())},
    )


@app.get("/health", tags=["Health"])
async def health_check():
    return {
        "status": "ok",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "environment": settings.env,
    }


@app.middleware("http")
async def log_requests(request: Request, call_next):
    start_time = time.time()
    response = await call_next(request)
    duration = time.time() - start_time
    logger.info(
        f"{request.method} {request.url.path} {response.status_code} {duration:.2f}s"
    )
    return response


if __name__ == "__main__":
    import uvicorn
    load_dotenv()
    port = int(os.getenv("PORT", 8002))
    uvicorn.run("app.main:app", host="0.0.0.0", port=port, reload=True)
