"""
HTTP API for the code search service.
Thin FastAPI wrapper over ProjectIndex; every route maps core errors to status codes.
"""

from typing import Callable, List

from fastapi import Depends, FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool

from ..core import config
from ..core.db import health_check
from ..core.errors import (
    EmbeddingError,
    EmptyIndexError,
    IndexingError,
    InvalidProjectNameError,
    ProjectNotFoundError,
    StorageError,
)
from ..core.project_index import ProjectIndex
from ..core.schema import CodeBlock
from ..indexer import index_directory
from ..util.logging import logger
from .schemas import (
    CodeBlockResponse,
    CreateProjectRequest,
    GenerateEmbeddingsRequest,
    GenerateEmbeddingsResponse,
    HealthResponse,
    MessageResponse,
    ProjectInfoResponse,
    SearchResponse,
)

ERROR_STATUS_CODES = {
    InvalidProjectNameError: 400,
    IndexingError: 400,
    ProjectNotFoundError: 404,
    EmptyIndexError: 422,
    EmbeddingError: 502,
    StorageError: 500,
}


def get_project_index(request: Request) -> ProjectIndex:
    return request.app.state.project_index


def get_code_indexer(request: Request) -> Callable[[str], List[CodeBlock]]:
    return request.app.state.code_indexer


def _message(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"message": message})


def _blocks(blocks: List[CodeBlock]) -> List[CodeBlockResponse]:
    return [CodeBlockResponse(**block.to_dict()) for block in blocks]


async def _read_text(request: Request) -> str:
    """Decode the raw request body as UTF-8 text."""
    body = await request.body()
    return body.decode("utf-8")


def create_app(project_index: ProjectIndex, code_indexer: Callable[[str], List[CodeBlock]] = None) -> FastAPI:
    """Build the FastAPI application around an already-constructed ProjectIndex."""
    app = FastAPI(
        title="codevec",
        version=config.VERSION,
        description="Project-scoped semantic code search over embedded code blocks",
        docs_url="/docs" if config.debug_enabled() else None,
        redoc_url="/redoc" if config.debug_enabled() else None,
    )
    app.state.project_index = project_index
    app.state.code_indexer = code_indexer or index_directory

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.CORS_ORIGINS,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    for error_class, status_code in ERROR_STATUS_CODES.items():
        app.add_exception_handler(error_class, _core_error_handler(status_code))

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        problems = [
            f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}"
            for error in exc.errors()
        ]
        return _message(422, "Invalid request: " + "; ".join(problems))

    @app.exception_handler(UnicodeDecodeError)
    async def unicode_error_handler(request: Request, exc: UnicodeDecodeError):
        return _message(400, "Request body must be UTF-8 text")

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        """Handle all unhandled exceptions."""
        logger.error(f"Unhandled exception: {exc}")
        content = {"message": "Internal server error"}
        if config.debug_enabled():
            content["debug"] = str(exc)
        return JSONResponse(status_code=500, content=content)

    @app.get("/health", response_model=HealthResponse)
    def health_check_endpoint(index: ProjectIndex = Depends(get_project_index)):
        """Check system health."""
        db_health = health_check(index.store.conn)
        return HealthResponse(
            status="healthy" if db_health else "unhealthy",
            version=config.VERSION,
            db_health=db_health,
        )

    @app.post("/project")
    def create_project(request: CreateProjectRequest, index: ProjectIndex = Depends(get_project_index)):
        index.create(request.project_name)
        return Response(status_code=200)

    @app.post("/project/generate", response_model=GenerateEmbeddingsResponse)
    def generate_embeddings(
        request: GenerateEmbeddingsRequest,
        index: ProjectIndex = Depends(get_project_index),
        code_indexer: Callable[[str], List[CodeBlock]] = Depends(get_code_indexer),
    ):
        """Index the project's source tree and embed every block."""
        if not index.exists(request.project_name):
            raise ProjectNotFoundError(request.project_name)

        blocks = code_indexer(request.project_path)
        index.ingest(request.project_name, blocks)

        return GenerateEmbeddingsResponse(
            project_name=request.project_name,
            project_path=request.project_path,
            message=f"Generated embeddings for {request.project_name}",
        )

    @app.get("/project/{project_name}", response_model=ProjectInfoResponse)
    def project_info(project_name: str, index: ProjectIndex = Depends(get_project_index)):
        info = index.info(project_name)
        if info is None:
            return _message(404, f"Project {project_name} not found")
        return ProjectInfoResponse(name=info.name, total_code_blocks=info.total_blocks)

    @app.delete("/project/{project_name}", response_model=MessageResponse)
    def delete_project(project_name: str, index: ProjectIndex = Depends(get_project_index)):
        index.delete(project_name)
        return MessageResponse(message=f"Deleted project {project_name}")

    @app.post("/search/{project_name}", response_model=SearchResponse)
    async def search_embeddings(project_name: str, request: Request, index: ProjectIndex = Depends(get_project_index)):
        """Semantic search: the request body is the query code."""
        search_code = await _read_text(request)
        result = await run_in_threadpool(index.find_similar, project_name, search_code, config.SEARCH_TOP_K)
        return SearchResponse(nearest=result.nearest, k_nearest=result.k_nearest)

    @app.post("/get_blocks/{project_name}", response_model=List[CodeBlockResponse])
    def get_all_function_blocks(project_name: str, index: ProjectIndex = Depends(get_project_index)):
        return _blocks(index.function_blocks(project_name))

    @app.post("/search_blocks/{project_name}", response_model=List[CodeBlockResponse])
    async def search_function_blocks(project_name: str, request: Request, index: ProjectIndex = Depends(get_project_index)):
        """Substring search over function blocks: the request body is the needle."""
        needle = await _read_text(request)
        blocks = await run_in_threadpool(index.find_by_text, project_name, needle)
        return _blocks(blocks)

    @app.post("/search_by_function/{project_name}", response_model=List[CodeBlockResponse])
    async def search_by_function_name(project_name: str, request: Request, index: ProjectIndex = Depends(get_project_index)):
        """Exact function-name lookup: the request body is the function name."""
        function_name = await _read_text(request)
        blocks = await run_in_threadpool(index.find_by_function_name, project_name, function_name)
        return _blocks(blocks)

    return app


def _core_error_handler(status_code: int):
    async def handler(request: Request, exc: Exception):
        if status_code >= 500:
            logger.error(f"{request.method} {request.url.path} failed: {exc}")
        return _message(status_code, str(exc))
    return handler
