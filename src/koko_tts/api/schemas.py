"""
API Request/Response Schemas.

Example speech request:
    {
        "model": "kokoro",
        "input": "Hello world. This is a test!",
        "voice": "af_sarah.4+af_nicole.6",
        "response_format": "wav",
        "speed": 1.0,
        "stream": false
    }
"""
from __future__ import annotations

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field


class ResponseFormat(str, Enum):
    """
    Audio formats.

    WAV: 32-bit float WAV (a streaming header when ``stream`` is set)
    PCM: raw little-endian float32 samples, 24 kHz mono
    """
    WAV = "wav"
    PCM = "pcm"


class SpeechRequest(BaseModel):
    """
    OpenAI-compatible speech request.

    Attributes:
        model: Accepted for compatibility; there is only one model.
        input: Text to synthesize.
        voice: Style spec, a single voice ("af_sky") or a blend
            ("af_sarah.4+af_nicole.6"). Defaults to the configured style.
        response_format: wav or pcm.
        speed: Speaking rate multiplier. Defaults to the configured speed.
        initial_silence: Silence tokens prepended to every chunk.
        stream: Stream audio chunk by chunk as it is produced.
    """
    model: str = Field(default="kokoro", description="Ignored, kept for OpenAI clients.")
    input: str = Field(..., min_length=1, max_length=20000, description="The text to generate audio for.")
    voice: Optional[str] = Field(default=None, description="Voice or blend spec.")
    response_format: ResponseFormat = Field(default=ResponseFormat.WAV)
    speed: Optional[float] = Field(default=None, gt=0.0, le=4.0)
    initial_silence: Optional[int] = Field(default=None, ge=0)
    stream: bool = Field(default=False)


class VoicesResponse(BaseModel):
    voices: List[str]


class ModelInfo(BaseModel):
    id: str
    object: str = "model"
    owned_by: str = "koko"


class ModelList(BaseModel):
    object: str = "list"
    data: List[ModelInfo]


class InstanceHealth(BaseModel):
    instance_id: str
    active: int
    total: int


class HealthResponse(BaseModel):
    status: str
    instances: int
    voices: int
    details: List[InstanceHealth]
