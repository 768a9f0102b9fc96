"""
Office document to PDF conversion backends.

``LocalConverter`` shells out to a headless LibreOffice and polls for the
rendition, ``RemoteConverter`` asks a cloud drive API for a PDF rendition
after a client-credentials token exchange. Both expose ``convert``.
"""
import logging
import subprocess
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Callable, List, Optional

import httpx
from starlette.concurrency import run_in_threadpool

from pdf_functions.core.config import settings
from pdf_functions.core.errors import AuthenticationFailed, ConversionFailed, ConversionTimedOut
from pdf_functions.schemas.conversion import LocalConversionRequest, RemoteConversionRequest
from pdf_functions.services.scratch_service import ScratchSpace

logger = logging.getLogger(__name__)


class ConversionState(str, Enum):
    SUBMITTED = "submitted"
    POLLING = "polling"
    AUTHENTICATING = "authenticating"
    REQUESTING = "requesting"
    DONE = "done"
    TIMED_OUT = "timed_out"
    FAILED = "failed"


@dataclass
class ConversionJob:
    """Tracks one conversion through its states."""
    input_ref: str
    output_path: Path
    state: ConversionState = ConversionState.SUBMITTED
    attempts: int = 0
    error_message: Optional[str] = None
    status_code: Optional[int] = None
    start_time: Optional[float] = None
    end_time: Optional[float] = None
    history: List[ConversionState] = field(default_factory=list)

    def __post_init__(self):
        self.history.append(self.state)

    def transition(self, state: ConversionState):
        logger.info("Conversion of %s: %s -> %s", self.input_ref, self.state.value, state.value)
        self.state = state
        self.history.append(state)
        if state in (ConversionState.DONE, ConversionState.TIMED_OUT, ConversionState.FAILED):
            self.end_time = time.time()

    @property
    def duration(self) -> Optional[float]:
        if self.start_time and self.end_time:
            return self.end_time - self.start_time
        return None


class ConversionBackend(ABC):
    @abstractmethod
    async def convert(self, request, scratch: ScratchSpace) -> Path:
        """Produce a PDF rendition inside ``scratch`` and return its path."""


class LocalConverter(ConversionBackend):
    def __init__(
        self,
        binary: Optional[str] = None,
        poll_interval: Optional[float] = None,
        poll_attempts: Optional[int] = None,
        process_timeout: Optional[float] = None,
        runner: Callable[..., subprocess.CompletedProcess] = subprocess.run,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.binary = binary or settings.LIBREOFFICE_BIN
        self.poll_interval = settings.CONVERSION_POLL_INTERVAL if poll_interval is None else poll_interval
        self.poll_attempts = settings.CONVERSION_POLL_ATTEMPTS if poll_attempts is None else poll_attempts
        self.process_timeout = settings.CONVERSION_PROCESS_TIMEOUT if process_timeout is None else process_timeout
        self._run = runner
        self._sleep = sleep

    def build_command(self, input_path: Path, output_dir: Path, profile_dir: Optional[Path] = None) -> List[str]:
        cmd = [self.binary]
        if profile_dir is not None:
            cmd.append(f"-env:UserInstallation={profile_dir.resolve().as_uri()}")
        cmd += [
            "--norestore",
            "--nofirststartwizard",
            "--headless",
            "--convert-to", "pdf",
            "--outdir", str(output_dir),
            str(input_path),
        ]
        return cmd

    def run_job(self, input_path: Path, output_dir: Path, profile_dir: Optional[Path] = None) -> ConversionJob:
        """Run the converter and poll for its output. Blocks the calling thread."""
        expected = output_dir / f"{input_path.stem}.pdf"
        job = ConversionJob(input_ref=input_path.name, output_path=expected, start_time=time.time())

        cmd = self.build_command(input_path, output_dir, profile_dir)
        try:
            result = self._run(
                cmd,
                capture_output=True,
                text=True,
                timeout=self.process_timeout,
                cwd=str(output_dir),
            )
        except subprocess.TimeoutExpired:
            job.error_message = f"Converter did not exit within {self.process_timeout} seconds"
            job.transition(ConversionState.FAILED)
            return job
        except OSError as e:
            job.error_message = f"Could not start converter {self.binary}: {e}"
            job.transition(ConversionState.FAILED)
            return job

        if result.returncode != 0:
            job.error_message = f"Failed to convert file (exit code {result.returncode}): {(result.stderr or '').strip()}"
            job.transition(ConversionState.FAILED)
            return job

        # LibreOffice can exit before the rendition is flushed to disk
        job.transition(ConversionState.POLLING)
        while job.attempts < self.poll_attempts:
            job.attempts += 1
            if expected.exists():
                job.transition(ConversionState.DONE)
                return job
            if job.attempts < self.poll_attempts:
                self._sleep(self.poll_interval)

        job.error_message = f"Error converting file to PDF: no output after {job.attempts} checks"
        job.transition(ConversionState.TIMED_OUT)
        return job

    async def convert(self, request: LocalConversionRequest, scratch: ScratchSpace) -> Path:
        output_dir = request.input_path.parent
        scratch.track(output_dir / f"{request.input_path.stem}.pdf")
        profile_dir = scratch.directory("converter_profile")
        job = await run_in_threadpool(self.run_job, request.input_path, output_dir, profile_dir)
        if job.state == ConversionState.TIMED_OUT:
            raise ConversionTimedOut(job.error_message)
        if job.state != ConversionState.DONE:
            raise ConversionFailed(job.error_message)
        logger.info("Converted %s in %.2fs", request.input_path.name, job.duration or 0.0)
        return job.output_path


class RemoteConverter(ConversionBackend):
    def __init__(
        self,
        authority_host: Optional[str] = None,
        api_base: Optional[str] = None,
        scope: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.authority_host = (authority_host or settings.REMOTE_AUTHORITY_HOST).rstrip("/")
        self.api_base = (api_base or settings.REMOTE_API_BASE).rstrip("/")
        self.scope = scope or settings.REMOTE_SCOPE
        self.timeout = settings.REMOTE_TIMEOUT if timeout is None else timeout
        self._transport = transport

    def token_url(self, tenant_id: str) -> str:
        return f"{self.authority_host}/{tenant_id}/oauth2/v2.0/token"

    def rendition_url(self, drive_id: str, file_id: str) -> str:
        return f"{self.api_base}/drives/{drive_id}/items/{file_id}/content"

    async def acquire_token(self, client: httpx.AsyncClient, request: RemoteConversionRequest) -> str:
        try:
            response = await client.post(
                self.token_url(request.tenant_id),
                data={
                    "grant_type": "client_credentials",
                    "client_id": request.client_id,
                    "client_secret": request.client_secret,
                    "scope": self.scope,
                },
            )
        except httpx.HTTPError as e:
            raise AuthenticationFailed(f"Token request failed: {e}") from e

        if response.status_code != 200:
            raise AuthenticationFailed(
                f"Token request rejected with status {response.status_code}: {response.text}",
                status_code=response.status_code,
            )
        try:
            payload = response.json()
        except ValueError as e:
            raise AuthenticationFailed(f"Token response was not JSON: {response.text}") from e
        token = payload.get("access_token") if isinstance(payload, dict) else None
        if not token or not isinstance(token, str):
            raise AuthenticationFailed(f"Token response did not contain an access token: {response.text}")
        return token

    async def run_job(self, request: RemoteConversionRequest, output_path: Path) -> ConversionJob:
        job = ConversionJob(input_ref=f"{request.drive_id}/{request.file_id}", output_path=output_path,
                            state=ConversionState.AUTHENTICATING, start_time=time.time())

        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport, follow_redirects=True) as client:
            try:
                token = await self.acquire_token(client, request)
            except AuthenticationFailed as e:
                job.error_message = e.message
                job.status_code = e.status_code
                job.transition(ConversionState.FAILED)
                raise

            job.transition(ConversionState.REQUESTING)
            try:
                response = await client.get(
                    self.rendition_url(request.drive_id, request.file_id),
                    params={"format": "pdf"},
                    headers={"Authorization": f"Bearer {token}"},
                )
            except httpx.HTTPError as e:
                job.error_message = str(e)
                job.transition(ConversionState.FAILED)
                raise ConversionFailed(f"Rendition request failed: {e}") from e

        job.status_code = response.status_code
        if not response.is_success:
            job.error_message = response.text
            job.transition(ConversionState.FAILED)
            logger.error("Remote rendition failed with status %s: %s", response.status_code, response.text)
            # The remote error body goes back to the caller untouched
            raise ConversionFailed(response.text, verbatim=True)

        with open(output_path, "wb") as f:
            f.write(response.content)
        job.transition(ConversionState.DONE)
        return job

    async def convert(self, request: RemoteConversionRequest, scratch: ScratchSpace) -> Path:
        job = await self.run_job(request, scratch.reserve("rendition.pdf"))
        return job.output_path

local_converter = LocalConverter()
remote_converter = RemoteConverter()
