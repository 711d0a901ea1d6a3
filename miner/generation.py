"""
Seedance video generation: task creation, status normalisation and the
client-side polling state machine.

The transition function ``advance`` is pure; ``GenerationPoller`` only adds
I/O and timing around it (sleep and clock are injectable).
"""
from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field, replace
from typing import Any, Awaitable, Callable, Dict, List, Optional

from crawler.infra.http import FETCH_ERRORS, FetchError, HttpFetcher, response_json
from miner.errors import ConfigurationError, MalformedPayloadError, MinerError, for_status
from miner.models import GenerationTask, TaskStatus
from utils.security import is_configured_key, redact_secrets

logger = logging.getLogger(__name__)

POLL_INTERVAL_SECONDS = 5.0
MAX_WAIT_SECONDS = 180.0
PROGRESS_CAP = 90.0
INITIAL_PROGRESS = 10.0

TIMEOUT_MESSAGE = "Timeout: a geração demorou mais de 3 minutos."
FAILED_MESSAGE = "A geração do vídeo falhou."

MODEL_BY_MODE = {"Fast": "seedance_2.0_fast", "Standard": "seedance_2.0"}

STATUS_TEXT = {
    TaskStatus.QUEUED: "Na fila...",
    TaskStatus.PROCESSING: "Processando vídeo...",
    TaskStatus.COMPLETED: "Vídeo pronto!",
    TaskStatus.FAILED: FAILED_MESSAGE,
    TaskStatus.TIMED_OUT: TIMEOUT_MESSAGE,
}


@dataclass
class GenerationRequest:
    prompt: str
    aspect_ratio: str = "16:9"
    duration: int = 5
    mode: str = "Fast"
    media_files: List[str] = field(default_factory=list)

    def to_params(self) -> Dict[str, Any]:
        params: Dict[str, Any] = {
            "prompt": self.prompt,
            "aspect_ratio": self.aspect_ratio,
            "duration": str(self.duration),
            "model": MODEL_BY_MODE.get(self.mode, MODEL_BY_MODE["Fast"]),
        }
        if self.media_files:
            params["media_files"] = list(self.media_files)
        return params


@dataclass(frozen=True)
class PollResponse:
    status: str
    video_url: Optional[str] = None
    error: Optional[str] = None

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "PollResponse":
        status = str(payload.get("status") or "pending").lower()
        video_url = None
        if status == "completed":
            for container in (payload.get("output"), payload.get("result")):
                if isinstance(container, dict):
                    video_url = container.get("video_url") or container.get("media_url") or container.get("url")
                    if video_url:
                        break
        error = None
        if status == "failed":
            error = payload.get("error") or payload.get("message") or FAILED_MESSAGE
        return cls(status=status, video_url=video_url, error=error)

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"status": self.status}
        if self.video_url:
            payload["videoUrl"] = self.video_url
        if self.error:
            payload["error"] = self.error
        return payload


def extract_task_id(payload: Any) -> Optional[str]:
    if not isinstance(payload, dict):
        return None
    data = payload.get("data") if isinstance(payload.get("data"), dict) else {}
    for value in (payload.get("task_id"), payload.get("taskId"), payload.get("id"), data.get("task_id"), data.get("id")):
        if value:
            return str(value)
    return None


def advance(
    task: GenerationTask,
    response: PollResponse,
    elapsed: float,
    *,
    budget: float = MAX_WAIT_SECONDS,
) -> GenerationTask:
    """One polling step. Terminal tasks never change; progress never goes down."""
    if task.is_terminal:
        return task
    if response.status == "completed" and response.video_url:
        return replace(task, status=TaskStatus.COMPLETED, elapsed=elapsed, progress=100.0, video_url=response.video_url)
    if response.status == "failed":
        return replace(task, status=TaskStatus.FAILED, elapsed=elapsed, error=response.error or FAILED_MESSAGE)
    if elapsed >= budget:
        # client-side give-up; the server may still finish the task
        return replace(task, status=TaskStatus.TIMED_OUT, elapsed=elapsed, error=TIMEOUT_MESSAGE)
    progress = max(task.progress, min(PROGRESS_CAP, elapsed / budget * PROGRESS_CAP))
    status = TaskStatus.PROCESSING if response.status == "processing" else TaskStatus.QUEUED
    return replace(task, status=status, elapsed=elapsed, progress=progress)


class SeedanceClient:
    create_url = "https://api.xskill.ai/api/v3/tasks/create"
    query_url = "https://api.xskill.ai/api/v3/tasks/query"
    model = "st-ai/super-seed2"

    def __init__(self, api_key: str, fetcher: HttpFetcher) -> None:
        self.api_key = api_key
        self.fetcher = fetcher

    def _headers(self) -> Dict[str, str]:
        if not is_configured_key(self.api_key):
            raise ConfigurationError("XSKILL_API_KEY não configurada.")
        return {"Authorization": f"Bearer {self.api_key}"}

    async def _post(self, url: str, body: Dict[str, Any]) -> Dict[str, Any]:
        response = await self.fetcher.post_json(url, body, headers=self._headers(), timeout=60.0)
        try:
            data = response_json(response)
        except FetchError as exc:
            raise MalformedPayloadError(str(exc)) from exc
        if response.status_code >= 400:
            detail = data.get("message") or data.get("error") if isinstance(data, dict) else None
            logger.error("Seedance HTTP %s: %s", response.status_code, redact_secrets(str(detail)))
            raise for_status(response.status_code, detail or f"Seedance HTTP {response.status_code}")
        if not isinstance(data, dict):
            raise MalformedPayloadError("Seedance: resposta não é um objeto JSON.")
        return data

    async def create(self, request: GenerationRequest) -> Dict[str, Any]:
        """Returns ``{"taskId": ..., "price": ...}``; no task id is a malformed payload."""
        if not request.prompt.strip():
            raise ValueError("prompt is required")
        data = await self._post(self.create_url, {"model": self.model, "params": request.to_params()})
        task_id = extract_task_id(data)
        if not task_id:
            raise MalformedPayloadError("Seedance: resposta sem task_id.")
        logger.info("Seedance task %s created", task_id)
        return {"taskId": task_id, "price": data.get("price")}

    async def query(self, task_id: str) -> PollResponse:
        return PollResponse.from_payload(await self._post(self.query_url, {"task_id": task_id}))


class GenerationPoller:
    """Create a task, then poll it every ``interval`` seconds until terminal."""

    def __init__(
        self,
        client: SeedanceClient,
        *,
        interval: float = POLL_INTERVAL_SECONDS,
        budget: float = MAX_WAIT_SECONDS,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.client = client
        self.interval = interval
        self.budget = budget
        self.sleep = sleep
        self.clock = clock
        self._cancelled = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        """Stop polling after the current step. The server-side task is left alone."""
        self._cancelled = True

    async def run(
        self,
        request: GenerationRequest,
        on_update: Optional[Callable[[GenerationTask], None]] = None,
    ) -> GenerationTask:
        created = await self.client.create(request)
        started = self.clock()
        task = GenerationTask(task_id=created["taskId"], status=TaskStatus.QUEUED, progress=INITIAL_PROGRESS)
        if on_update:
            on_update(task)
        return await self.poll(task, started, on_update)

    async def poll(
        self,
        task: GenerationTask,
        started: float,
        on_update: Optional[Callable[[GenerationTask], None]] = None,
    ) -> GenerationTask:
        while not task.is_terminal and not self._cancelled:
            await self.sleep(self.interval)
            if self._cancelled:
                break
            elapsed = self.clock() - started
            try:
                response = await self.client.query(task.task_id)
            except (MinerError, *FETCH_ERRORS) as exc:
                # a failed poll is not a failed task; keep going until the budget runs out
                logger.warning("Seedance poll for %s failed: %s", task.task_id, exc)
                response = PollResponse(status=task.status.value)
            task = advance(task, response, elapsed, budget=self.budget)
            logger.debug("Seedance task %s: %s (%.0f%%)", task.task_id, task.status.value, task.progress)
            if on_update:
                on_update(task)
        return task
