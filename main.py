from contextlib import asynccontextmanager
from typing import List, Optional

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from database import StorageStatus, init_storage
from errors import InvalidInputError, NotFoundError, ProcessingFailedError, StorageUnavailableError
from logging_config import setup_logging
from orchestrator import ReflectionOrchestrator
from responder import AnthropicResponder, Responder
from schemas import (
    Chapter,
    Conversation,
    ConversationCreate,
    MessageCreate,
    SearchResults,
    TurnResult,
    Verse,
    VerseDetail,
)
from settings import Settings, get_settings
from storage import Storage


def create_app(
    settings: Optional[Settings] = None,
    storage: Optional[Storage] = None,
    responder: Optional[Responder] = None,
) -> FastAPI:
    """Build the API. Storage and responder are created at startup unless given."""
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        setup_logging(settings.LOG_LEVEL)
        if storage is None:
            app.state.storage, app.state.storage_status = await init_storage(settings)
        else:
            app.state.storage, app.state.storage_status = storage, StorageStatus(backend=storage.kind)
        app.state.orchestrator = ReflectionOrchestrator(
            app.state.storage,
            responder or AnthropicResponder(settings),
            settings,
        )
        yield
        if storage is None:
            app.state.storage.close()

    app = FastAPI(title="Gita Reflection API", lifespan=lifespan)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(RequestValidationError)
    async def bad_request(request: Request, exc: RequestValidationError):
        return JSONResponse({"detail": "Invalid request", "errors": jsonable_errors(exc)}, status_code=400)

    @app.exception_handler(StorageUnavailableError)
    async def storage_unavailable(request: Request, exc: StorageUnavailableError):
        return JSONResponse({"detail": "Storage unavailable"}, status_code=503)

    register_routes(app)
    return app


def jsonable_errors(exc: RequestValidationError) -> List[dict]:
    return [{"loc": list(e.get("loc", ())), "msg": e.get("msg", "")} for e in exc.errors()]


def get_storage(request: Request) -> Storage:
    return request.app.state.storage


def get_orchestrator(request: Request) -> ReflectionOrchestrator:
    return request.app.state.orchestrator


def register_routes(app: FastAPI) -> None:

    @app.get("/")
    async def read_root():
        return {"message": "Gita Reflection API running"}

    # Conversations

    @app.post("/api/conversations", response_model=Conversation)
    async def create_conversation(body: ConversationCreate, orchestrator: ReflectionOrchestrator = Depends(get_orchestrator)):
        if not body.session_id.strip():
            raise HTTPException(status_code=400, detail="sessionId is required")
        return await orchestrator.start(body.session_id)

    @app.get("/api/conversations/{session_id}", response_model=Conversation)
    async def get_conversation(session_id: str, storage: Storage = Depends(get_storage)):
        conversation = await storage.get_conversation(session_id)
        if conversation is None:
            raise HTTPException(status_code=404, detail="Conversation not found")
        return conversation

    @app.post("/api/conversations/{session_id}/messages", response_model=TurnResult)
    async def send_message(session_id: str, body: MessageCreate, orchestrator: ReflectionOrchestrator = Depends(get_orchestrator)):
        try:
            return await orchestrator.submit_message(session_id, body.message)
        except NotFoundError:
            raise HTTPException(status_code=404, detail="Conversation not found")
        except InvalidInputError:
            raise HTTPException(status_code=400, detail="Message is required")
        except ProcessingFailedError:
            raise HTTPException(status_code=500, detail="Failed to process message")

    # Verses

    @app.get("/api/verses/{verse_id}", response_model=VerseDetail)
    async def get_verse(verse_id: int, storage: Storage = Depends(get_storage)):
        verse = await storage.get_verse(verse_id)
        if verse is None:
            raise HTTPException(status_code=404, detail="Verse not found")
        chapter = await storage.get_chapter(verse.chapter_id)
        return VerseDetail(verse=verse, chapter=chapter)

    @app.get("/api/chapters", response_model=List[Chapter])
    async def list_chapters(storage: Storage = Depends(get_storage)):
        return await storage.list_chapters()

    @app.get("/api/chapters/{chapter_id}/verses", response_model=List[Verse])
    async def list_chapter_verses(chapter_id: int, storage: Storage = Depends(get_storage)):
        if await storage.get_chapter(chapter_id) is None:
            raise HTTPException(status_code=404, detail="Chapter not found")
        return await storage.list_verses_by_chapter(chapter_id)

    @app.get("/api/search", response_model=SearchResults)
    async def search(q: str = "", storage: Storage = Depends(get_storage)):
        return SearchResults(results=await storage.search_verses(q))

    @app.get("/test")
    async def storage_status(request: Request):
        """Report which storage backend is in use and whether it is a fallback."""
        status: StorageStatus = request.app.state.storage_status
        response = {
            "backend": "✅ Running",
            "storage": status.backend,
            "fallback": status.fallback,
            "reason": status.reason,
            "chapters": None,
        }
        try:
            response["chapters"] = len(await request.app.state.storage.list_chapters())
        except StorageUnavailableError as e:
            response["storage"] = f"❌ Error: {str(e)[:50]}"
        return response


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=get_settings().PORT)
