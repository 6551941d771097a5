# Book metadata resolution API: resolver, discovery, and the central lookup/discovery service
import asyncio
import os
from contextlib import asynccontextmanager
from typing import Any, Dict, List, Optional

from dotenv import load_dotenv
from fastapi import APIRouter, Depends, FastAPI, HTTPException, Query, Request, Response, status
from fastapi.responses import JSONResponse
from loguru import logger
from pydantic import BaseModel, Field
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address

from bookresolver.config import ENV_PATH, Settings, configure_logging
from bookresolver.errors import SourceError, ValidationError
from bookresolver.genres import list_genres
from bookresolver.models import BookRecord, DiscoveryQuery, Identifier
from bookresolver.normalizer import normalize
from bookresolver.services import Services, build_services

# --------------------------------------------------------------------
# 1. Configuration & Setup
# --------------------------------------------------------------------

load_dotenv(dotenv_path=ENV_PATH)

RATE_LIMIT_STORAGE = os.getenv("RATE_LIMIT_STORAGE", "memory://")

limiter = Limiter(key_func=get_remote_address, storage_uri=RATE_LIMIT_STORAGE, default_limits=["100/minute"])

router = APIRouter()


def get_services(request: Request) -> Services:
    return request.app.state.services


# --------------------------------------------------------------------
# 2. Pydantic Models
# --------------------------------------------------------------------

class GenreItem(BaseModel):
    id: str
    label: str

class GenresResponse(BaseModel):
    success: bool = True
    genres: List[GenreItem]

class SearchResponse(BaseModel):
    query: str
    num_found: int
    source: Optional[str] = None
    results: List[BookRecord]

class DiscoverResponse(BaseModel):
    genre: str
    num_found: int
    results: List[BookRecord]

class ServiceHealth(BaseModel):
    name: str
    status: str
    detail: Optional[str] = None

class HealthResponse(BaseModel):
    status: str
    services: List[ServiceHealth]

# --- Central service contract (camelCase on the wire) ---

class LookupBookRequest(BaseModel):
    isbn: str

class LookupBookResponse(BaseModel):
    success: bool
    book: Optional[BookRecord] = None
    source: Optional[str] = None

class DiscoverBooksRequest(BaseModel):
    genre: str = "random"
    excludeISBNs: List[str] = Field(default_factory=list)
    limit: int = Field(20, gt=0, le=100)
    userPreferences: Optional[Dict[str, Any]] = None

class DiscoverBooksResponse(BaseModel):
    success: bool = True
    books: List[BookRecord]
    totalFound: int
    genre: str


# --------------------------------------------------------------------
# 3. Health Checks
# --------------------------------------------------------------------

async def check_redis_health(services: Services) -> ServiceHealth:
    if services.redis is None: return ServiceHealth(name="redis", status="error", detail="Redis client not initialized.")
    try:
        await services.redis.ping()
        return ServiceHealth(name="redis", status="ok")
    except Exception as e:
        return ServiceHealth(name="redis", status="error", detail=str(e))

async def check_catalog_health(name: str, ping) -> ServiceHealth:
    try:
        code = await ping()
    except SourceError as e:
        return ServiceHealth(name=name, status="error", detail=e.reason)
    if code >= 400: return ServiceHealth(name=name, status="error", detail=f"HTTP {code}")
    return ServiceHealth(name=name, status="ok")


# --------------------------------------------------------------------
# 4. API Endpoints
# --------------------------------------------------------------------

@router.get("/")
async def read_root(request: Request): return {"message": "Book resolution API is running!"}

@router.get("/health", response_model=HealthResponse, tags=["Health"])
async def get_health(response: Response, services: Services = Depends(get_services)):
    results = await asyncio.gather(
        check_redis_health(services),
        check_catalog_health("google_books", services.google.ping),
        check_catalog_health("open_library", services.open_library.ping),
    )
    if any(res.status == "error" for res in results):
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
        return HealthResponse(status="error", services=results)
    return HealthResponse(status="ok", services=results)

@router.get("/genres", response_model=GenresResponse, tags=["Discovery"])
@limiter.limit("20/minute")
async def get_genres(request: Request):
    return GenresResponse(genres=[GenreItem(**g) for g in list_genres()])

@router.get("/book/isbn/{isbn}", response_model=BookRecord, tags=["Books"])
@limiter.limit("100/minute")
async def get_book_by_isbn(request: Request, isbn: str, services: Services = Depends(get_services)):
    query = normalize(isbn)
    if not isinstance(query, Identifier):
        raise HTTPException(status_code=400, detail="Invalid ISBN.")
    resolution = await services.resolver.resolve_identifier(query)
    if not resolution.found:
        raise HTTPException(status_code=404, detail="Book not found.")
    return resolution.records[0]

@router.get("/search", response_model=SearchResponse, tags=["Books"])
@limiter.limit("60/minute")
async def search_books(request: Request, q: str, limit: int = Query(20, ge=1, le=40),
                       services: Services = Depends(get_services)):
    resolution = await services.resolver.lookup(q, max_results=limit)
    return SearchResponse(
        query=q,
        num_found=len(resolution.records),
        source=resolution.origin.value if resolution.origin else None,
        results=resolution.records,
    )

@router.get("/discover", response_model=DiscoverResponse, tags=["Discovery"])
@limiter.limit("30/minute")
async def discover_books(request: Request, genre: str = "random", exclude: List[str] = Query(default=[]),
                         limit: int = Query(20, ge=1, le=40), services: Services = Depends(get_services)):
    query = DiscoveryQuery(genre=genre, exclude_identifiers=frozenset(exclude), limit=limit)
    books = await services.discovery.discover(query)
    return DiscoverResponse(genre=genre, num_found=len(books), results=books)

# --- Central service endpoints ---

@router.post("/lookupBook", response_model=LookupBookResponse, tags=["Central"])
@limiter.limit("100/minute")
async def central_lookup_book(request: Request, body: LookupBookRequest, services: Services = Depends(get_services)):
    query = normalize(body.isbn)
    if not isinstance(query, Identifier):
        raise ValidationError("ISBN is required")
    resolution = await services.central_resolver.resolve_identifier(query)
    if not resolution.found:
        return JSONResponse(status_code=404, content={"success": False, "error": "not-found"})
    return LookupBookResponse(success=True, book=resolution.records[0], source=resolution.origin.value)

@router.post("/discoverBooks", response_model=DiscoverBooksResponse, tags=["Central"])
@limiter.limit("30/minute")
async def central_discover_books(request: Request, body: DiscoverBooksRequest,
                                 services: Services = Depends(get_services)):
    logger.info(f"Discovery request: genre={body.genre}, excludeCount={len(body.excludeISBNs)}, limit={body.limit}")
    result = await services.recommender.recommend(
        genre=body.genre,
        exclude_isbns=body.excludeISBNs,
        limit=body.limit,
        user_preferences=body.userPreferences,
    )
    return DiscoverBooksResponse(books=result.books, totalFound=result.total_found, genre=result.genre)


# --------------------------------------------------------------------
# 5. Application
# --------------------------------------------------------------------

async def _validation_error_handler(request: Request, exc: ValidationError):
    return JSONResponse(status_code=400, content={"success": False, "error": "invalid-argument", "detail": str(exc)})


def create_app(services: Optional[Services] = None) -> FastAPI:
    """
    Build the API. With no `services`, settings are read from the environment
    at startup (a missing variable aborts startup) and adapters are built once.
    """
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if services is None:
            settings = Settings.from_env()
            configure_logging(settings.log_level, settings.log_json)
            app.state.services = build_services(settings)
            logger.info("Book resolution services started.")
        try:
            yield
        finally:
            if services is None:
                await app.state.services.aclose()
            else:
                await services.cache_writer.join()

    app = FastAPI(
        title="Book Resolution API",
        description="Resolves loose book queries to canonical records across cache, central service and catalogs.",
        version="1.0.0",
        lifespan=lifespan,
    )
    if services is not None:
        app.state.services = services
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
    app.add_exception_handler(ValidationError, _validation_error_handler)
    app.include_router(router)
    return app


app = create_app()
