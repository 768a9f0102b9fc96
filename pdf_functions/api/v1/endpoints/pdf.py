from fastapi import APIRouter, Depends, Request
from fastapi.responses import Response
from pdf_functions.services.pipeline_service import PipelineController, get_pipeline

router = APIRouter(prefix="/pdf", tags=["PDF Manipulation"])

@router.post("/merge", response_class=Response)
async def merge_pdfs(request: Request, pipeline: PipelineController = Depends(get_pipeline)):
    """Merge the uploaded PDFs, in upload order, into one document."""
    result = await pipeline.merge(request)
    return result.to_response()

@router.post("/watermark", response_class=Response)
async def add_watermark(request: Request, pipeline: PipelineController = Depends(get_pipeline)):
    """Stamp ``watermarkText`` on every page of the uploaded PDF."""
    result = await pipeline.watermark(request)
    return result.to_response()
