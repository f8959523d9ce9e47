# floatchat/server.py
from fastapi import FastAPI, APIRouter, UploadFile, File, HTTPException
from fastapi.middleware.cors import CORSMiddleware
import os
import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple
from pydantic import BaseModel, Field
import tempfile
import numpy as np
import re

# Azure OpenAI (Cognitive Services) async SDK
from openai import AsyncAzureOpenAI

from .config import get_settings
from .figures import to_figure
from .ingest import describe_dataset, read_argo_rows
from .schemas import (
    ConversationTurn,
    MeasurementRow,
    QueryContext,
    VisualizationKind,
    VisualizationOptions,
)
from .sessions import SessionNotFound, SessionRegistry
from .visualization import map_visualization

settings = get_settings()

# ---- Logging ----
logging.basicConfig(level=getattr(logging, settings.log_level, logging.INFO))
logger = logging.getLogger("server")

# =============================================================================
# App & CORS
# =============================================================================
app = FastAPI(
    title="FloatChat AI - ARGO Ocean Data Explorer",
    description="Conversational query context and visualization mapping for ARGO ocean data",
    version="1.0.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=settings.allow_credentials,
    allow_methods=["*"],
    allow_headers=["*"],
)

api_router = APIRouter(prefix="/api")

registry = SessionRegistry(window_size=settings.context_window)

# =============================================================================
# Schemas
# =============================================================================
class SessionResponse(BaseModel):
    session_id: str


class ChatRequest(BaseModel):
    message: str = Field(..., description="User message")
    session_id: Optional[str] = None
    context: Optional[QueryContext] = None


class ChatResponse(BaseModel):
    response: str
    session_id: str
    message_id: str
    status: str = "success"
    provider: Optional[str] = None
    turn: Optional[ConversationTurn] = None
    query_context: QueryContext = Field(default_factory=QueryContext)


class VisualizeRequest(BaseModel):
    kind: VisualizationKind
    session_id: Optional[str] = None
    rows: Optional[List[Dict[str, Any]]] = None
    options: VisualizationOptions = Field(default_factory=VisualizationOptions)


class NetCDFResponse(BaseModel):
    file_id: str
    session_id: str
    filename: str
    dimensions: Dict[str, Any]
    variables: Dict[str, Any]
    global_attributes: Dict[str, Any]
    total_variables: int
    total_dimensions: int
    rows_ingested: int


# =============================================================================
# Azure OpenAI (Cognitive Services) client
# =============================================================================
def _azure_client() -> AsyncAzureOpenAI:
    cfg = get_settings()
    if not cfg.azure_api_key or not cfg.azure_endpoint:
        raise RuntimeError(
            "Azure OpenAI not fully configured. "
            "Set AZURE_OPENAI_API_KEY and AZURE_OPENAI_ENDPOINT in .env"
        )
    return AsyncAzureOpenAI(
        api_key=cfg.azure_api_key,
        azure_endpoint=cfg.azure_endpoint,
        api_version=cfg.azure_api_version,
    )


async def generate_reply(messages: List[Dict[str, str]]) -> Tuple[str, str]:
    """Run a chat completion; returns (text, provider)."""
    deployment = get_settings().azure_deployment
    if not deployment:
        raise RuntimeError("AZURE_OPENAI_DEPLOYMENT is missing.")
    client = _azure_client()
    resp = await client.chat.completions.create(
        model=deployment,
        messages=messages,
        temperature=0.4,
        top_p=1.0,
        max_tokens=800,
    )
    text = (resp.choices[0].message.content or "").strip()
    return text, f"azure-cs:{deployment}"


# =============================================================================
# Direct answers from a session's rows
# =============================================================================
def _mean(values: List[Optional[float]]) -> Optional[float]:
    arr = np.array([v for v in values if v is not None], dtype=float)
    return float(arr.mean()) if arr.size else None


def try_answer_from_data(user_text: str, rows: List[MeasurementRow]) -> Optional[str]:
    t = user_text.lower().strip()

    if "latest position" in t or ("latest" in t and "position" in t):
        located = [r for r in rows if r.latitude is not None and r.longitude is not None]
        if not located:
            return "I couldn't find any positions in the ingested data."
        dated = [r for r in located if r.date is not None]
        row = max(dated, key=lambda r: r.date) if dated else located[-1]
        return f"Latest known position: lat={row.latitude:.4f}, lon={row.longitude:.4f}."

    m = re.search(r"(avg|average|mean)\s+temp(?:erature)?\s+(?:at|@)\s*(\d+)\s*m", t)
    if m:
        depth = float(m.group(2))
        tol = max(2.0, depth * 0.05)
        avg = _mean([
            r.temperature for r in rows
            if r.depth is not None and depth - tol <= r.depth <= depth + tol
        ])
        if avg is not None:
            return f"Average temperature near {depth} m is {avg:.3f} °C (±{tol:.1f} m window)."
        return f"I couldn't find temperature points around {depth} m."

    m2 = re.search(r"(avg|average|mean)\s+salinity\s+(?:between|from)\s*(\d+)\s*(?:to|and|-)\s*(\d+)\s*m", t)
    if m2:
        d1, d2 = float(m2.group(2)), float(m2.group(3))
        lo, hi = min(d1, d2), max(d1, d2)
        avg = _mean([
            r.salinity for r in rows
            if r.depth is not None and lo <= r.depth <= hi
        ])
        if avg is not None:
            return f"Average salinity between {lo}–{hi} m is {avg:.4f} PSU."
        return f"I couldn't find salinity points between {lo}–{hi} m."

    return None


def describe_context(ctx: QueryContext) -> str:
    parts = []
    if ctx.preferred_parameters:
        parts.append("parameters: " + ", ".join(ctx.preferred_parameters))
    if ctx.recent_entity_ids:
        parts.append("floats: " + ", ".join(dict.fromkeys(ctx.recent_entity_ids)))
    if ctx.spatial_focus:
        parts.append(f"near lat={ctx.spatial_focus.latitude:.2f}, lon={ctx.spatial_focus.longitude:.2f}")
    if ctx.temporal_focus:
        parts.append(
            f"between {ctx.temporal_focus.start.date().isoformat()} and {ctx.temporal_focus.end.date().isoformat()}"
        )
    for key, value in ctx.active_filters.items():
        parts.append(f"{key}: {value}")
    return "; ".join(parts)


SYSTEM_MESSAGE = (
    "You are FloatChat, an expert AI assistant for ARGO ocean data analysis. "
    "Use the query context and data summaries provided in system messages. "
    "If a question requires statistics you do not have, explain what data "
    "is needed or suggest uploading a file that contains those variables."
)


# =============================================================================
# Sessions & context
# =============================================================================
@api_router.post("/session", response_model=SessionResponse)
async def create_session():
    session = registry.create_session()
    return SessionResponse(session_id=session.id)


@api_router.get("/session/{session_id}/context", response_model=QueryContext)
async def get_context(session_id: str):
    try:
        return registry.get(session_id).context
    except SessionNotFound:
        raise HTTPException(status_code=404, detail="Session not found")


@api_router.put("/session/{session_id}/context")
async def update_context(session_id: str, context: QueryContext):
    try:
        registry.update_context(session_id, context)
    except SessionNotFound:
        raise HTTPException(status_code=404, detail="Session not found")
    return {"session_id": session_id, "status": "success"}


@api_router.post("/session/{session_id}/context/clear", response_model=QueryContext)
async def clear_context(session_id: str):
    try:
        session = registry.get(session_id)
    except SessionNotFound:
        raise HTTPException(status_code=404, detail="Session not found")
    session.store.clear()
    return session.context


# =============================================================================
# Chat
# =============================================================================
@api_router.post("/chat", response_model=ChatResponse)
async def chat_endpoint(request: ChatRequest):
    session_id = request.session_id or str(uuid.uuid4())
    try:
        session = registry.create_session(session_id)
        registry.save_chat_message(session_id, "user", request.message)
        # context sent by the client wins over the server-side extraction
        if request.context is not None:
            registry.update_context(session_id, request.context)

        direct = try_answer_from_data(request.message, session.rows)
        if direct:
            turn = registry.save_chat_message(session_id, "assistant", direct, confidence_score=1.0)
            return ChatResponse(
                response=direct,
                session_id=session_id,
                message_id=turn.id,
                provider="data",
                turn=turn,
                query_context=session.context,
            )

        cfg = get_settings()
        messages = [{"role": "system", "content": SYSTEM_MESSAGE}]
        summary = describe_context(session.context)
        if summary:
            messages.append({"role": "system", "content": f"Current query context: {summary}"})
        if session.files:
            lines = [f"File: {f['filename']} — {f['rows']} rows" for f in session.files]
            messages.append({"role": "system", "content": "User has uploaded NetCDF files:\n" + "\n".join(lines)})
        for t in registry.get_chat_history(session_id, limit=cfg.history_limit):
            messages.append({"role": t.role, "content": t.text})

        text, provider = await generate_reply(messages)

        turn = registry.save_chat_message(session_id, "assistant", text)
        return ChatResponse(
            response=text,
            session_id=session_id,
            message_id=turn.id,
            provider=provider,
            turn=turn,
            query_context=session.context,
        )

    except Exception as e:
        logger.error(f"Chat endpoint error: {e}")
        apology = "I encountered an error processing your request. Please try again."
        turn = registry.save_chat_message(session_id, "assistant", apology, confidence_score=0.0)
        context = registry.get(session_id).context
        return ChatResponse(
            response=apology,
            session_id=session_id,
            message_id=turn.id,
            status="error",
            turn=turn,
            query_context=context,
        )


@api_router.get("/chat/history/{session_id}")
async def get_session_history(session_id: str):
    try:
        history = registry.get_chat_history(session_id)
    except SessionNotFound:
        raise HTTPException(status_code=404, detail="Session not found")
    return {"session_id": session_id, "messages": [t.model_dump(mode="json") for t in history]}


@api_router.delete("/chat/session/{session_id}")
async def clear_session(session_id: str):
    try:
        registry.clear_session(session_id)
    except SessionNotFound:
        raise HTTPException(status_code=404, detail="Session not found")
    return {"message": f"Session {session_id} cleared", "status": "success"}


@api_router.delete("/chat/all")
async def clear_all_sessions():
    n = registry.clear_all()
    return {"message": f"{n} session(s) cleared", "status": "success"}


# =============================================================================
# NetCDF upload
# =============================================================================
@api_router.post("/data/upload", response_model=NetCDFResponse)
async def upload_netcdf(session_id: Optional[str] = None, file: UploadFile = File(...)):
    if not file.filename.lower().endswith((".nc", ".netcdf", ".cdf")):
        raise HTTPException(status_code=400, detail="File must be a NetCDF file (.nc, .netcdf, .cdf)")

    session_id = session_id or registry.create_session().id
    tmp_path = None
    try:
        content = await file.read()

        with tempfile.NamedTemporaryFile(delete=False, suffix=".nc") as tmp:
            tmp.write(content)
            tmp_path = tmp.name

        metadata = describe_dataset(tmp_path)
        rows = read_argo_rows(tmp_path)
    except Exception as e:
        logger.error(f"NetCDF processing error: {e}")
        raise HTTPException(status_code=422, detail=f"Error processing NetCDF file: {e}")
    finally:
        if tmp_path and os.path.exists(tmp_path):
            try:
                os.unlink(tmp_path)
            except OSError as e:
                logger.warning(f"Could not remove temp file {tmp_path}: {e}")

    file_id = str(uuid.uuid4())
    registry.attach_rows(
        session_id,
        rows,
        {"id": file_id, "filename": file.filename, "file_size": len(content), "rows": len(rows)},
    )
    return NetCDFResponse(
        file_id=file_id,
        session_id=session_id,
        filename=file.filename,
        dimensions=metadata["dimensions"],
        variables=metadata["variables"],
        global_attributes=metadata["global_attributes"],
        total_variables=len(metadata["variables"]),
        total_dimensions=len(metadata["dimensions"]),
        rows_ingested=len(rows),
    )


# =============================================================================
# Visualization
# =============================================================================
def _render(request: VisualizeRequest):
    if request.rows is not None:
        rows = request.rows
    elif request.session_id:
        try:
            rows = registry.get(request.session_id).rows
        except SessionNotFound:
            raise HTTPException(status_code=404, detail="Session not found")
    else:
        raise HTTPException(status_code=400, detail="Provide rows or a session_id")

    try:
        return map_visualization(request.kind, rows, request.options)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@api_router.post("/visualize")
async def visualize(request: VisualizeRequest):
    return _render(request).model_dump(mode="json")


@api_router.post("/plot")
async def plot(request: VisualizeRequest):
    return to_figure(_render(request))


# =============================================================================
# Health
# =============================================================================
@api_router.get("/health")
async def health_check():
    cfg = get_settings()
    return {
        "status": "healthy",
        "service": "FloatChat AI Backend",
        "metrics": registry.metrics(),
        "services": {
            "sessions": "in-memory",
            "ai_service": "configured" if cfg.ai_configured else "not_configured",
        },
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


# ---- Mount API ----
app.include_router(api_router)


@app.get("/api")
async def api_root():
    return {
        "message": "FloatChat AI Backend API",
        "version": "1.0.0",
        "docs": "/docs",
        "health": "/api/health",
    }


# ---- Dev entrypoint ----
def main():
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8001, reload=False)


if __name__ == "__main__":
    main()
