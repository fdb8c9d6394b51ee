"""FastAPI web API for the Recruitica candidate-introduction workflow.

Routes cover the client directory, candidate intake, draft generation and
refinement, plus the thin proxy functions the browser client calls directly
(``/functions/*``). Uploaded keynotes are served under the public storage
prefix.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Any, Iterator, Optional

from fastapi import (
    Body,
    Depends,
    FastAPI,
    File,
    Form,
    Header,
    HTTPException,
    Query,
    Request,
    UploadFile,
)
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from fastapi.staticfiles import StaticFiles
from pydantic import BaseModel
from sqlalchemy.orm import Session

from recruitica.clients.openrouter import OpenRouterClient
from recruitica.config import settings, validate_config
from recruitica.errors import RecruiticaError, ValidationError
from recruitica.models import (
    BatchAttachIn,
    CandidateOut,
    ClientEntryOut,
    ClientIn,
    ClientListIn,
    ClientListOut,
    ClientOut,
    EntryOut,
    ExtractIn,
    ExtractOut,
    FinalizeRequest,
    GenerateDraftIn,
    IntakeView,
    RefineIn,
    RefineOut,
    TuneIn,
)
from recruitica.services.candidate_intake import CandidateIntake, validate_upload
from recruitica.services.client_directory import ClientDirectory
from recruitica.services.document_text import extract_document_text
from recruitica.services.email_refinement import (
    RefinementSession,
    available_models,
    tune_email,
)
from recruitica.services.webhook_gateway import WebhookGateway
from recruitica.store.database import get_session, init_db
from recruitica.store.files import PUBLIC_PREFIX, FileStore

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

VERSION = "0.1.0"
AFTER_FINALIZE_SCREEN = "/candidate/submit"


@asynccontextmanager
async def lifespan(app: FastAPI):
    validate_config()
    logger.info("Initialising database...")
    try:
        init_db()
    except Exception:
        logger.exception("Database init failed – running in degraded mode")
    logger.info("Recruitica API ready")
    yield


app = FastAPI(
    title="Recruitica",
    version=VERSION,
    description="Submit candidates, curate client lists and draft introduction emails.",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.mount(
    PUBLIC_PREFIX,
    StaticFiles(directory=settings.storage_dir, check_dir=False),
    name="storage",
)


@app.exception_handler(RecruiticaError)
async def recruitica_error_handler(request: Request, exc: RecruiticaError):
    logger.info("%s on %s: %s", type(exc).__name__, request.url.path, exc.message)
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message, "error": type(exc).__name__},
    )


# ---------------------------------------------------------------------------
# Dependencies
# ---------------------------------------------------------------------------

_bearer_scheme = HTTPBearer(auto_error=False)


def verify_api_key(
    credentials: HTTPAuthorizationCredentials | None = Depends(_bearer_scheme),
):
    """Require a valid Bearer token when API_KEY is set."""
    expected = settings.api_key
    if not expected:
        return  # auth disabled – no key configured
    if not credentials or credentials.credentials != expected:
        raise HTTPException(status_code=401, detail="Invalid or missing API key")


def current_user(x_user_id: Optional[str] = Header(None)) -> str:
    return x_user_id or settings.default_user_id


def get_db() -> Iterator[Session]:
    session = get_session()
    try:
        yield session
    finally:
        session.close()


def get_file_store() -> FileStore:
    return FileStore()


def get_gateway() -> WebhookGateway:
    return WebhookGateway()


def get_ai_client() -> OpenRouterClient:
    return OpenRouterClient()


def get_directory(
    session: Session = Depends(get_db), user_id: str = Depends(current_user),
) -> ClientDirectory:
    return ClientDirectory(session, user_id)


def get_intake(
    session: Session = Depends(get_db),
    user_id: str = Depends(current_user),
    files: FileStore = Depends(get_file_store),
) -> CandidateIntake:
    return CandidateIntake(session, user_id, files=files)


# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------

class HealthResponse(BaseModel):
    status: str
    version: str
    database: str
    openrouter_configured: bool
    draft_webhook_configured: bool
    finalize_webhook_configured: bool


@app.get("/health", response_model=HealthResponse)
def health_check():
    """Health check – verifies the service is running and shows config status."""
    return HealthResponse(
        status="ok",
        version=VERSION,
        database="sqlite" if settings.is_sqlite else "postgres",
        openrouter_configured=bool(settings.openrouter_api_key),
        draft_webhook_configured=bool(settings.draft_webhook_url),
        finalize_webhook_configured=bool(settings.finalize_webhook_url),
    )


# ---------------------------------------------------------------------------
# Client lists and directory
# ---------------------------------------------------------------------------

@app.get("/client-lists", response_model=list[ClientListOut], dependencies=[Depends(verify_api_key)])
def list_client_lists(directory: ClientDirectory = Depends(get_directory)):
    return directory.list_lists()


@app.post(
    "/client-lists",
    response_model=ClientListOut,
    status_code=201,
    dependencies=[Depends(verify_api_key)],
)
def create_client_list(body: ClientListIn, directory: ClientDirectory = Depends(get_directory)):
    return directory.create_list(body.name, body.description)


@app.get("/client-lists/{list_id}", response_model=ClientListOut, dependencies=[Depends(verify_api_key)])
def get_client_list(list_id: int, directory: ClientDirectory = Depends(get_directory)):
    return directory.get_list(list_id)


@app.delete("/client-lists/{list_id}", status_code=204, dependencies=[Depends(verify_api_key)])
def delete_client_list(list_id: int, directory: ClientDirectory = Depends(get_directory)):
    directory.delete_list(list_id)


@app.get(
    "/client-lists/{list_id}/clients",
    response_model=list[ClientEntryOut],
    dependencies=[Depends(verify_api_key)],
)
def list_clients_in_list(list_id: int, directory: ClientDirectory = Depends(get_directory)):
    return directory.list_entries(list_id)


@app.post(
    "/client-lists/{list_id}/clients",
    response_model=ClientOut,
    status_code=201,
    dependencies=[Depends(verify_api_key)],
)
def add_client_to_list(
    list_id: int, body: ClientIn, directory: ClientDirectory = Depends(get_directory),
):
    """Add a client by email, reusing an existing directory entry when there is one."""
    return directory.add_or_attach(body.email, body.name, body.company_name, list_id)


@app.post(
    "/client-lists/{list_id}/clients/batch",
    response_model=list[EntryOut],
    status_code=201,
    dependencies=[Depends(verify_api_key)],
)
def batch_attach_clients(
    list_id: int, body: BatchAttachIn, directory: ClientDirectory = Depends(get_directory),
):
    return directory.batch_attach(body.client_ids, list_id)


@app.get(
    "/client-lists/{list_id}/search",
    response_model=list[ClientOut],
    dependencies=[Depends(verify_api_key)],
)
def search_clients(
    list_id: int,
    q: str = Query("", description="Matches name, email or company"),
    directory: ClientDirectory = Depends(get_directory),
):
    return directory.search(q, list_id)


@app.post(
    "/client-lists/{list_id}/clients/{client_id}/toggle",
    response_model=EntryOut,
    dependencies=[Depends(verify_api_key)],
)
def toggle_client(
    list_id: int, client_id: int, directory: ClientDirectory = Depends(get_directory),
):
    return directory.toggle_active(client_id, list_id)


@app.delete(
    "/client-lists/{list_id}/clients/{client_id}",
    status_code=204,
    dependencies=[Depends(verify_api_key)],
)
def remove_client(
    list_id: int, client_id: int, directory: ClientDirectory = Depends(get_directory),
):
    directory.remove(client_id, list_id)


# ---------------------------------------------------------------------------
# Candidates
# ---------------------------------------------------------------------------

def _intake_view(flow) -> IntakeView:
    return IntakeView(
        state=flow.state,
        client_lists=[ClientListOut.model_validate(c) for c in flow.client_lists],
        candidate=CandidateOut.model_validate(flow.candidate) if flow.candidate else None,
        next_screen=flow.next_screen,
        redirect_after_seconds=flow.redirect_after_seconds,
    )


@app.get("/candidates/intake", response_model=IntakeView, dependencies=[Depends(verify_api_key)])
def candidate_intake_state(intake: CandidateIntake = Depends(get_intake)):
    """Whether the candidate form can be shown (requires at least one client list)."""
    return _intake_view(intake.begin())


@app.post(
    "/candidates",
    response_model=IntakeView,
    status_code=201,
    dependencies=[Depends(verify_api_key)],
)
async def submit_candidate(
    candidate_name: str = Form(...),
    client_list_id: int = Form(...),
    keynotes: Optional[UploadFile] = File(None),
    intake: CandidateIntake = Depends(get_intake),
):
    flow = intake.begin()
    upload = None
    if keynotes is not None and keynotes.filename:
        data = await keynotes.read()
        upload = validate_upload(keynotes.filename, keynotes.content_type, data)
    flow = intake.submit(candidate_name, client_list_id, upload, flow=flow)
    return _intake_view(flow)


@app.get(
    "/candidates/latest",
    response_model=Optional[CandidateOut],
    dependencies=[Depends(verify_api_key)],
)
def latest_candidate(intake: CandidateIntake = Depends(get_intake)):
    return intake.latest_candidate()


# ---------------------------------------------------------------------------
# Drafts
# ---------------------------------------------------------------------------

@app.post("/drafts", dependencies=[Depends(verify_api_key)])
async def generate_draft(
    body: GenerateDraftIn,
    intake: CandidateIntake = Depends(get_intake),
    gateway: WebhookGateway = Depends(get_gateway),
):
    """Send the candidate and the list's active contacts to the drafting workflow."""
    if body.candidate_id is not None:
        candidate = intake.get_candidate(body.candidate_id)
    else:
        candidate = intake.latest_candidate()
    if candidate is None:
        raise ValidationError("No candidate data found. Please submit a candidate first.")

    contacts = intake.directory.active_contacts(body.client_list_id)
    if not contacts:
        raise ValidationError("Please select at least one client before continuing.")

    draft = await gateway.generate_draft(
        candidate.candidate_name, candidate.keynotes_url, contacts,
    )
    return draft.to_wire()


@app.post("/drafts/finalize", dependencies=[Depends(verify_api_key)])
async def finalize_draft(
    body: FinalizeRequest, gateway: WebhookGateway = Depends(get_gateway),
):
    """Hand the finished email to the sending workflow; the user moves on regardless."""
    if not body.email_body:
        raise ValidationError("Email content is missing")
    if not body.client_list:
        raise ValidationError("Contact list is missing. Please go back and select contacts.")
    delivered = await gateway.finalize(body.email_subject, body.email_body, body.client_list)
    return {"delivered": delivered, "next_screen": AFTER_FINALIZE_SCREEN}


@app.post("/drafts/tune", dependencies=[Depends(verify_api_key)])
async def tune_draft(body: TuneIn, client: OpenRouterClient = Depends(get_ai_client)):
    refined = await tune_email(client, body.model, body.email_body)
    return {"email_body": refined}


@app.post("/drafts/refine", response_model=RefineOut, dependencies=[Depends(verify_api_key)])
async def refine_draft(body: RefineIn, client: OpenRouterClient = Depends(get_ai_client)):
    session = RefinementSession(html=body.html, model=body.model)
    await session.apply(client, body.instruction)
    return RefineOut(html=session.html, preview_html=session.preview)


@app.get("/models", dependencies=[Depends(verify_api_key)])
async def list_models(client: OpenRouterClient = Depends(get_ai_client)):
    return {"models": await available_models(client)}


# ---------------------------------------------------------------------------
# Proxy functions
# ---------------------------------------------------------------------------

@app.post("/functions/ai-generate", dependencies=[Depends(verify_api_key)])
async def ai_generate(
    request: dict[str, Any] = Body(...),
    client: OpenRouterClient = Depends(get_ai_client),
):
    try:
        return await client.chat_completion(request)
    except RecruiticaError as exc:
        logger.error("Error in ai-generate: %s", exc.message)
        return JSONResponse(status_code=500, content={"error": exc.message})


@app.api_route(
    "/functions/get-openrouter-models",
    methods=["GET", "POST"],
    dependencies=[Depends(verify_api_key)],
)
async def get_openrouter_models(client: OpenRouterClient = Depends(get_ai_client)):
    try:
        return {"models": await client.list_models()}
    except RecruiticaError as exc:
        logger.error("Error in get-openrouter-models: %s", exc.message)
        return JSONResponse(status_code=500, content={"error": exc.message, "models": []})


@app.post(
    "/functions/extract-document-text",
    response_model=ExtractOut,
    dependencies=[Depends(verify_api_key)],
)
def extract_text(body: ExtractIn, files: FileStore = Depends(get_file_store)):
    if not body.file_url:
        return JSONResponse(status_code=400, content={"error": "File URL is required"})
    try:
        result = extract_document_text(body.file_url, files)
    except RecruiticaError as exc:
        logger.error("Error extracting text: %s", exc.message)
        return JSONResponse(
            status_code=500, content={"success": False, "error": exc.message},
        )
    return JSONResponse(content=result.model_dump(by_alias=True, exclude_none=True))
