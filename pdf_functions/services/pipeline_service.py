"""
Request orchestration for the merge, watermark and convert operations.

The controller validates the incoming request, stages uploads through a
request-scoped ``ScratchSpace``, hands off to the matching backend and reads
the finished PDF back into memory. Scratch entries are removed on every
exit path, and any exception is turned into a 400 ``PipelineResult``
instead of escaping the handler.
"""
import json
import logging
import math
import traceback
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Tuple

from fastapi import Request
from fastapi.responses import PlainTextResponse, Response
from pydantic import ValidationError
from starlette.concurrency import run_in_threadpool
from starlette.datastructures import FormData, UploadFile

from pdf_functions.core.config import settings
from pdf_functions.core.errors import BadRequest, ErrorKind, MissingParameter, PipelineError
from pdf_functions.schemas.conversion import (
    LocalConversionRequest,
    RemoteConversionRequest,
    is_office_document,
)
from pdf_functions.schemas.watermark import WatermarkSpec
from pdf_functions.services.conversion_service import (
    ConversionBackend,
    local_converter as default_local_converter,
    remote_converter as default_remote_converter,
)
from pdf_functions.services.pdf_service import DocumentAssembler, document_assembler
from pdf_functions.services.scratch_service import ScratchSpace, safe_filename
from pdf_functions.services.watermark_service import (
    WatermarkEngine,
    resolve_color,
    resolve_font,
    watermark_engine,
)

logger = logging.getLogger(__name__)

PDF_MEDIA_TYPE = "application/pdf"


@dataclass
class PipelineResult:
    content: Optional[bytes] = None
    filename: Optional[str] = None
    media_type: str = PDF_MEDIA_TYPE
    error: Optional[ErrorKind] = None
    message: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def to_response(self) -> Response:
        if not self.ok:
            return PlainTextResponse(self.message, status_code=400)
        return Response(
            content=self.content,
            media_type=self.media_type,
            headers={"Content-Disposition": f"attachment; filename={self.filename}"},
        )


def format_diagnostic(exc: BaseException) -> str:
    """Render an exception as the free-text diagnostic returned to clients."""
    kind = getattr(exc, "kind", None)
    frames = traceback.extract_tb(exc.__traceback__)
    source = f"{Path(frames[-1].filename).stem}.{frames[-1].name}" if frames else "unknown"
    stack = "".join(traceback.format_tb(exc.__traceback__)).rstrip()
    return (
        f"Kind: {kind.value if kind else type(exc).__name__}\n"
        f"Message: {exc}\n"
        f"Stack Trace: {stack}\n"
        f"Source: {source}"
    )


def _text_field(form: FormData, name: str) -> Optional[str]:
    value = form.get(name)
    return value if isinstance(value, str) else None


def _float_field(form: FormData, name: str, default: float) -> float:
    raw = _text_field(form, name)
    if raw is None or not raw.strip():
        return default
    try:
        value = float(raw)
        if not math.isfinite(value):
            raise ValueError(raw)
        return value
    except ValueError:
        logger.warning("Ignoring unparsable %s=%r, using %s", name, raw, default)
        return default


class PipelineController:
    def __init__(
        self,
        assembler: Optional[DocumentAssembler] = None,
        watermarker: Optional[WatermarkEngine] = None,
        local_converter: Optional[ConversionBackend] = None,
        remote_converter: Optional[ConversionBackend] = None,
        scratch_root: Optional[str] = None,
    ):
        self.assembler = assembler or document_assembler
        self.watermarker = watermarker or watermark_engine
        self.local_converter = local_converter or default_local_converter
        self.remote_converter = remote_converter or default_remote_converter
        self.scratch_root = scratch_root or settings.SCRATCH_ROOT

    def scratch(self) -> ScratchSpace:
        return ScratchSpace(self.scratch_root)

    # -- preconditions -----------------------------------------------------

    @staticmethod
    async def read_uploads(request: Request) -> Tuple[FormData, List[UploadFile]]:
        content_type = request.headers.get("content-type", "")
        if not content_type.lower().startswith("multipart/form-data"):
            raise BadRequest("Incorrect content type. Expected 'multipart/form-data'.")

        form = await request.form()
        files = [
            value for _, value in form.multi_items()
            if isinstance(value, UploadFile) and (value.filename or value.size)
        ]
        if not files:
            raise BadRequest("No files were uploaded")
        return form, files

    @staticmethod
    async def stage_uploads(scratch: ScratchSpace, files: List[UploadFile]) -> List[Path]:
        staged = []
        for upload in files:
            content = await upload.read()
            staged.append(scratch.stage(upload.filename or "upload.pdf", content))
        return staged

    @staticmethod
    def watermark_spec(form: FormData) -> WatermarkSpec:
        text = _text_field(form, "watermarkText")
        if not text or not text.strip():
            raise BadRequest("Missing watermark text.")

        return WatermarkSpec(
            text=text,
            font=resolve_font(_text_field(form, "watermarkFont") or settings.WATERMARK_FONT),
            font_size=max(_float_field(form, "watermarkFontSize", settings.WATERMARK_FONT_SIZE), 1.0),
            color=resolve_color(_text_field(form, "watermarkColor")),
            opacity=_float_field(form, "watermarkOpacity", settings.WATERMARK_OPACITY),
            rotation=_float_field(form, "watermarkRotation", settings.WATERMARK_ROTATION),
            position_x=_float_field(form, "watermarkPositionX", settings.WATERMARK_POSITION_X),
            position_y=_float_field(form, "watermarkPositionY", settings.WATERMARK_POSITION_Y),
        )

    # -- operations --------------------------------------------------------

    async def merge(self, request: Request) -> PipelineResult:
        with self.scratch() as scratch:
            try:
                _, files = await self.read_uploads(request)
                inputs = await self.stage_uploads(scratch, files)
                output = await run_in_threadpool(self.assembler.merge, inputs, scratch.reserve("merged.pdf"))
                return self._success(output, "merged.pdf")
            except Exception as exc:
                return self._failure("merge", exc)
            finally:
                # Closes every part of the parsed form, used or not
                await request.close()

    async def watermark(self, request: Request) -> PipelineResult:
        with self.scratch() as scratch:
            try:
                form, files = await self.read_uploads(request)
                spec = self.watermark_spec(form)
                upload = files[0]
                original = safe_filename(upload.filename or "document.pdf")
                input_path = (await self.stage_uploads(scratch, [upload]))[0]
                output = await run_in_threadpool(
                    self.watermarker.apply, input_path, spec, scratch.reserve(f"watermarked_{original}"))
                return self._success(output, f"watermarked_{original}")
            except Exception as exc:
                return self._failure("watermark", exc)
            finally:
                await request.close()

    async def convert_local(self, request: Request) -> PipelineResult:
        with self.scratch() as scratch:
            try:
                _, files = await self.read_uploads(request)
                upload = files[0]
                filename = upload.filename or ""
                if not is_office_document(filename):
                    raise BadRequest("Incorrect file type. Expected '.docx' or '.xlsx'.")
                input_path = (await self.stage_uploads(scratch, [upload]))[0]
                output = await self.local_converter.convert(LocalConversionRequest(input_path=input_path), scratch)
                return self._success(output, f"{Path(safe_filename(filename)).stem}.pdf")
            except Exception as exc:
                return self._failure("convert_local", exc)
            finally:
                await request.close()

    async def convert_remote(self, request: Request) -> PipelineResult:
        with self.scratch() as scratch:
            try:
                conversion = await self.remote_request(request)
                output = await self.remote_converter.convert(conversion, scratch)
                return self._success(output, "outputfilename.pdf")
            except Exception as exc:
                return self._failure("convert_remote", exc)

    @staticmethod
    async def remote_request(request: Request) -> RemoteConversionRequest:
        try:
            payload = json.loads(await request.body() or b"null")
        except ValueError as e:
            raise BadRequest(f"Invalid JSON payload: {e}") from e
        if not isinstance(payload, dict):
            raise BadRequest("Expected a JSON object")
        try:
            return RemoteConversionRequest.model_validate(payload)
        except ValidationError as e:
            missing = sorted({str(err["loc"][0]) for err in e.errors() if err.get("loc")})
            raise MissingParameter(f"Missing or blank parameters: {', '.join(missing)}") from e

    # -- results -----------------------------------------------------------

    @staticmethod
    def _success(output: Path, filename: str) -> PipelineResult:
        # Read fully before the scratch space is torn down
        with open(output, "rb") as f:
            content = f.read()
        return PipelineResult(content=content, filename=filename)

    @staticmethod
    def _failure(operation: str, exc: Exception) -> PipelineResult:
        if isinstance(exc, PipelineError) and exc.verbatim:
            logger.warning("%s rejected: %s", operation, exc.message)
            return PipelineResult(error=exc.kind, message=exc.message)

        diagnostic = format_diagnostic(exc)
        logger.error("%s failed\n%s", operation, diagnostic)
        kind = exc.kind if isinstance(exc, PipelineError) else ErrorKind.BAD_REQUEST
        return PipelineResult(error=kind, message=diagnostic)

pipeline_controller = PipelineController()


def get_pipeline() -> PipelineController:
    return pipeline_controller
