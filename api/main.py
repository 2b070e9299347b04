"""
FastAPI application

- POST /recognize: image upload (multipart file or data URI) -> consensus
- GET /providers: configured providers and disambiguator status
"""

import logging
from functools import lru_cache
from typing import List, Optional

from fastapi import Depends, FastAPI, File, Form, HTTPException, UploadFile
from pydantic import BaseModel

from equation_ocr import (
    AllProvidersFailedError,
    ImageDecodeError,
    NoCandidatesError,
    RecognitionPipeline,
    RecognitionRequest,
)

logger = logging.getLogger(__name__)

app = FastAPI(
    title="Equation OCR API",
    description="Recognize a mathematical expression in a photo or upload",
    version="0.1.0",
)


@app.on_event("startup")
def configure_logging():
    """Set up root logging when the server starts, not on import"""
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


# ============================================================================
# Request/Response Models
# ============================================================================

class CandidateModel(BaseModel):
    source_stage: str
    text: str
    confidence: float
    explanation: str
    provider_id: Optional[str] = None


class ProviderResultModel(BaseModel):
    provider_id: str
    raw_text: str
    reported_confidence: float
    latency_ms: int
    succeeded: bool
    error_kind: Optional[str] = None


class RecognizeResponse(BaseModel):
    """Consensus returned to the calculator UI"""
    final_text: str
    final_confidence: float
    agreement_count: int
    supporting_candidates: List[CandidateModel]
    image_class: Optional[str] = None
    provider_results: List[ProviderResultModel]


class ProvidersResponse(BaseModel):
    providers: List[str]
    disambiguator_enabled: bool


# ============================================================================
# Dependencies
# ============================================================================

@lru_cache(maxsize=1)
def get_pipeline() -> RecognitionPipeline:
    """Pipeline built once from the environment (overridden in tests)"""
    return RecognitionPipeline.from_settings()


# ============================================================================
# API Endpoints
# ============================================================================

@app.post("/recognize", response_model=RecognizeResponse)
async def recognize(
    file: Optional[UploadFile] = File(None),
    image: Optional[str] = Form(None),
    hint: Optional[str] = Form(None),
    pipeline: RecognitionPipeline = Depends(get_pipeline),
):
    """
    Recognize the expression in an image

    Accepts either a multipart ``file`` or an ``image`` field holding a
    base64 data URI. ``hint`` is the expression shown before re-recognition.
    """
    if file is not None:
        payload = await file.read()
    elif image:
        payload = image
    else:
        raise HTTPException(status_code=422, detail=ImageDecodeError.user_message)

    request = RecognitionRequest(image=payload, hint=hint or None)

    try:
        result = await pipeline.recognize(request)
    except (ImageDecodeError, NoCandidatesError) as e:
        logger.info("[API] recognition rejected: %s", e)
        raise HTTPException(status_code=422, detail=e.user_message)
    except AllProvidersFailedError as e:
        logger.warning("[API] %s", e)
        raise HTTPException(status_code=503, detail=e.user_message)

    return result.to_dict()


@app.get("/providers", response_model=ProvidersResponse)
def providers(pipeline: RecognitionPipeline = Depends(get_pipeline)):
    """Configured providers and whether language-model disambiguation is on"""
    return ProvidersResponse(
        providers=pipeline.provider_ids,
        disambiguator_enabled=pipeline.disambiguator.enabled,
    )


@app.get("/")
def root():
    """API root"""
    return {
        "message": "Equation OCR API",
        "version": "0.1.0",
        "docs": "/docs",
        "endpoints": [
            "POST /recognize - recognize an expression image",
            "GET /providers - configured recognition providers",
        ],
    }


# ============================================================================
# Run
# ============================================================================

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
