from fastapi import APIRouter, Depends, Request
from fastapi.responses import Response
from pdf_functions.services.pipeline_service import PipelineController, get_pipeline

router = APIRouter(prefix="/convert", tags=["Document Conversion"])

@router.post("/local", response_class=Response)
async def convert_local(request: Request, pipeline: PipelineController = Depends(get_pipeline)):
    """Convert an uploaded .doc/.docx/.xls/.xlsx file with LibreOffice."""
    result = await pipeline.convert_local(request)
    return result.to_response()

@router.post("/remote", response_class=Response)
async def convert_remote(request: Request, pipeline: PipelineController = Depends(get_pipeline)):
    """Fetch a PDF rendition of a cloud drive item."""
    result = await pipeline.convert_remote(request)
    return result.to_response()
