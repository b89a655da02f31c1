"""
koko: Kokoro text-to-speech from the command line and over HTTP.

Text is split into model-sized chunks, converted to phonemes with espeak-ng,
tokenized against the Kokoro vocabulary and run through the Kokoro v1.0 ONNX
model with a (possibly blended) voice style.

Example Usage:
    >>> from koko_tts.tts.engine import SynthesisEngine, SynthesisRequest
    >>> engine = SynthesisEngine.load("checkpoints/kokoro-v1.0.onnx", "data/voices-v1.0.bin")
    >>> audio = engine.synthesize(SynthesisRequest(text="Hello world."))
"""

__version__ = "0.1.0"
__all__ = ["__version__"]
