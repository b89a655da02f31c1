"""
OpenAI-Compatible Speech Endpoints.

    POST /v1/audio/speech   text -> audio (whole file or streamed)
    GET  /v1/audio/voices   available voice names
    GET  /v1/models         single-entry model list

The ``voice`` field takes koko style specs directly, including blends:
    {"input": "Hello!", "voice": "af_sarah.4+af_nicole.6"}

Errors use OpenAI's envelope:
    {"error": {"message": "...", "type": "invalid_request_error", "code": "voice_not_found"}}

Streaming (``"stream": true``) uses word-count chunking so the first chunk
arrives quickly. The body is a WAV header followed by float32 frames (or
bare frames for ``pcm``). Once streaming has started the status code is
fixed; a failing chunk ends the stream early and is logged.

Example:
    from openai import OpenAI
    client = OpenAI(base_url="http://localhost:3000/v1", api_key="unused")
    client.audio.speech.create(model="kokoro", voice="af_sky", input="Hello!")
"""
from __future__ import annotations

import uuid
from typing import AsyncIterator, Iterator

from fastapi import APIRouter, Depends, Request, Response
from fastapi.responses import JSONResponse, StreamingResponse

from koko_tts.api.dependencies import get_config, get_pool
from koko_tts.api.schemas import ModelInfo, ModelList, ResponseFormat, SpeechRequest, VoicesResponse
from koko_tts.core.config import KokoConfig
from koko_tts.core.errors import ErrorCode, KokoError
from koko_tts.core.logging import debug, error, get_logger, info, set_request_id, success
from koko_tts.core.metrics import metrics
from koko_tts.tts.engine import AudioChunk, SynthesisEngine, SynthesisRequest
from koko_tts.tts.pool import InstancePool
from koko_tts.utils.audio import StreamHeader, pcm_bytes, wav_bytes
from koko_tts.utils.timeit import timeit

router = APIRouter()

_LOG = get_logger("koko.openai")

MODEL_ID = "kokoro"

_MEDIA_TYPES = {
    ResponseFormat.WAV: "audio/wav",
    ResponseFormat.PCM: "audio/pcm",
}

# ErrorCode -> (HTTP status, OpenAI error type)
_ERROR_MAP = {
    ErrorCode.VOICE_NOT_FOUND: (400, "invalid_request_error"),
    ErrorCode.INVALID_INPUT: (400, "invalid_request_error"),
    ErrorCode.INFERENCE_FAILED: (500, "server_error"),
    ErrorCode.PHONEMIZATION_FAILED: (500, "server_error"),
    ErrorCode.CONFIGURATION_ERROR: (503, "server_error"),
}


def _openai_error_response(message: str, error_type: str, code: str, status_code: int = 500) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={
            "error": {
                "message": message,
                "type": error_type,
                "code": code,
            }
        },
    )


def _status_label(exc: KokoError) -> str:
    status, _ = _ERROR_MAP.get(exc.code, (500, "server_error"))
    return "client_error" if status < 500 else "error"


def _error_from_koko(exc: KokoError, rid: str) -> JSONResponse:
    status, error_type = _ERROR_MAP.get(exc.code, (500, "server_error"))
    response = _openai_error_response(exc.message, error_type, exc.code.lower(), status)
    response.headers["X-Request-Id"] = rid
    return response


def _to_request(req: SpeechRequest, config: KokoConfig, rid: str) -> SynthesisRequest:
    return SynthesisRequest(
        text=req.input,
        language=config.tts.language,
        style=req.voice or config.tts.style,
        speed=req.speed if req.speed is not None else config.tts.speed,
        initial_silence=req.initial_silence if req.initial_silence is not None else config.tts.initial_silence,
        request_id=rid,
    )


@router.post("/v1/audio/speech", response_class=Response)
async def openai_speech(
    req: SpeechRequest,
    request: Request,
    pool: InstancePool = Depends(get_pool),
    config: KokoConfig = Depends(get_config),
):
    """
    Synthesize ``input`` with ``voice``.

    Returns:
        audio/wav or audio/pcm, with X-Request-Id and X-Instance-Id headers.

    Raises (as OpenAI error responses):
        400: Unknown voice or invalid parameters
        500: Inference failed on a chunk
    """
    rid = uuid.uuid4().hex[:12]
    set_request_id(rid)
    synth = _to_request(req, config, rid)

    info(
        _LOG, "speech_request",
        chars=len(req.input),
        voice=synth.style,
        format=req.response_format.value,
        stream=req.stream,
    )
    debug(_LOG, "speech_request_full", text=req.input, speed=synth.speed, initial_silence=synth.initial_silence)

    if req.stream:
        return await _stream_speech(req, synth, request, pool, config, rid)

    with timeit("speech") as t:
        try:
            audio, iid = await pool.synthesize_async(synth)
        except KokoError as exc:
            metrics.record_request(_status_label(exc), t.seconds)
            error(_LOG, "speech_failed", code=exc.code, message=exc.message)
            return _error_from_koko(exc, rid)

        if req.response_format == ResponseFormat.PCM:
            content = pcm_bytes(audio.samples, mono=True)
        else:
            content, _ = wav_bytes(audio.samples, audio.sample_rate, mono=True)

    metrics.record_request("success", t.timing.seconds)
    success(_LOG, "speech_done", instance=iid, audio_s=round(audio.duration_s, 3), bytes=len(content), seconds=round(t.timing.seconds, 4))

    return Response(
        content=content,
        media_type=_MEDIA_TYPES[req.response_format],
        headers={"X-Request-Id": rid, "X-Instance-Id": iid},
    )


async def _stream_speech(
    req: SpeechRequest,
    synth: SynthesisRequest,
    request: Request,
    pool: InstancePool,
    config: KokoConfig,
    rid: str,
):
    try:
        engine, chunks = await pool.open_stream(synth, max_words=config.tts.stream_max_words)
    except KokoError as exc:
        metrics.record_request(_status_label(exc), 0.0)
        error(_LOG, "speech_failed", code=exc.code, message=exc.message)
        return _error_from_koko(exc, rid)

    return StreamingResponse(
        _stream_body(req.response_format, engine, chunks, request, pool),
        media_type=_MEDIA_TYPES[req.response_format],
        headers={"X-Request-Id": rid, "X-Instance-Id": engine.instance_id},
    )


async def _stream_body(
    fmt: ResponseFormat,
    engine: SynthesisEngine,
    chunks: Iterator[AudioChunk],
    request: Request,
    pool: InstancePool,
) -> AsyncIterator[bytes]:
    if fmt == ResponseFormat.WAV:
        yield StreamHeader(channels=1, sample_rate=engine.sample_rate).to_bytes()

    sent = 0
    with timeit("speech_stream") as t:
        try:
            async for chunk in pool.iter_chunks_async(engine, chunks, request.is_disconnected):
                yield pcm_bytes(chunk.samples, mono=True)
                sent += 1
        except KokoError as exc:
            metrics.record_request("error", t.seconds)
            error(_LOG, "stream_aborted", code=exc.code, message=exc.message, chunks_sent=sent)
            return

    metrics.record_request("success", t.timing.seconds)
    success(_LOG, "stream_done", instance=engine.instance_id, chunks=sent, seconds=round(t.timing.seconds, 4))


@router.get("/v1/audio/voices", response_model=VoicesResponse)
def list_voices(pool: InstancePool = Depends(get_pool)):
    return VoicesResponse(voices=pool.voices())


@router.get("/v1/models", response_model=ModelList)
def list_models():
    return ModelList(data=[ModelInfo(id=MODEL_ID)])
