from fastapi import FastAPI, UploadFile, File, Form, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel
from typing import List, Optional
import logging, uuid, threading

from tender_lens.assistant import ask_assistant
from tender_lens.backend import GeminiBackend
from tender_lens.catalog import SOLUTIONS, get_solution
from tender_lens.config import config
from tender_lens.errors import AdmissionError, TenderLensError
from tender_lens.ingestion import admit_document
from tender_lens.main import TenderAnalysisPipeline
from tender_lens.schemas import AnalysisRequest, ChatTurn

logger = logging.getLogger("tender_lens.api")

app = FastAPI()
app.add_middleware(CORSMiddleware,
    allow_origins=["http://localhost:5173"],
    allow_methods=["*"], allow_headers=["*"])

jobs = {}  # job_id -> {status, message, filename, entity_name, result}
_backend = None
_backend_lock = threading.Lock()


def get_backend():
    """One Gemini client for the whole process, created on first use."""
    global _backend
    with _backend_lock:
        if _backend is None:
            _backend = GeminiBackend.from_config()
        return _backend


class AssistantQuery(BaseModel):
    history: List[ChatTurn] = []
    query: str


@app.get("/solutions")
def list_solutions():
    return [{"id": s.id, "name": s.name, "description": s.description} for s in SOLUTIONS]


@app.post("/analyze")
async def analyze(
    file: UploadFile = File(...),
    entity_name: Optional[str] = Form(None),
    solution_id: Optional[str] = Form(None),
):
    content = await file.read()
    try:
        admit_document(content, file.content_type, filename=file.filename)
    except AdmissionError as exc:
        status = {"type": 415, "size": 413}.get(exc.reason, 400)
        raise HTTPException(status_code=status, detail=str(exc))

    market_context = None
    if solution_id:
        try:
            solution = get_solution(solution_id)
        except KeyError as exc:
            raise HTTPException(status_code=400, detail=exc.args[0])
        entity_name, market_context = solution.name, solution.description
    if not entity_name or not entity_name.strip():
        raise HTTPException(status_code=400, detail="entity_name or solution_id is required")

    request = AnalysisRequest.build(
        content, entity_name, file.content_type,
        filename=file.filename, market_context=market_context,
    )
    job_id = str(uuid.uuid4())[:8]
    jobs[job_id] = {
        "status": "queued", "message": "Queued",
        "filename": file.filename, "entity_name": request.entity_name,
        "job_id": job_id, "result": None,
    }
    thread = threading.Thread(
        target=run_pipeline_sync,
        args=(job_id, request),
        daemon=True
    )
    thread.start()
    return {"job_id": job_id, "filename": file.filename}


def run_pipeline_sync(job_id: str, request: AnalysisRequest):
    job = jobs.get(job_id)
    if job is None:
        logger.info("Job %s was cancelled before it started", job_id)
        return
    job["status"] = "running"
    job["message"] = "Retrieving market context and analysing document..."
    try:
        pipeline = TenderAnalysisPipeline(get_backend())
        result = pipeline.run(request)
    except TenderLensError as e:
        logger.error("Job %s failed: %s: %s", job_id, type(e).__name__, e)
        job["status"] = "error"
        job["message"] = config.failure_message
        return
    except Exception:
        logger.exception("Job %s crashed", job_id)
        job["status"] = "error"
        job["message"] = config.failure_message
        return

    # Deleted while running: the run is discarded, not applied.
    if job_id not in jobs:
        logger.info("Job %s was cancelled, dropping its result", job_id)
        return
    job["result"] = result.model_dump(mode="json", by_alias=True)
    job["status"] = "done"
    job["message"] = (
        f"Complete — feasibility {result.feasibility_score}, "
        f"alignment {result.alignment_score}"
    )


@app.get("/jobs/{job_id}/status")
def get_status(job_id: str):
    if job_id not in jobs:
        raise HTTPException(status_code=404, detail="not found")
    return {k: v for k, v in jobs[job_id].items() if k != "result"}


@app.get("/jobs/{job_id}/result")
def get_result(job_id: str):
    job = jobs.get(job_id)
    if not job or job["status"] != "done":
        raise HTTPException(status_code=409, detail="not ready")
    return job["result"]


@app.get("/jobs")
def list_jobs():
    return [{k: v for k, v in job.items() if k != "result"} for job in jobs.values()]


@app.delete("/jobs/{job_id}")
def delete_job(job_id: str):
    jobs.pop(job_id, None)
    return {"deleted": job_id}


@app.post("/assistant")
def assistant(body: AssistantQuery):
    try:
        answer = ask_assistant(get_backend(), body.history, body.query)
    except Exception as e:
        logger.error("Assistant call failed: %s", e)
        raise HTTPException(status_code=502, detail="Assistant is unavailable, try again.")
    return {"answer": answer}
