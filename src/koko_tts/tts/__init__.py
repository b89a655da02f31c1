"""
Kokoro synthesis pipeline.

    - vocab.py: phoneme symbol <-> token id table
    - phonemizer.py: espeak-ng adapter behind a process-wide lock
    - style.py: voice style tables and blending
    - chunker.py: token-budget and word-count text chunking
    - inference.py: onnxruntime session for the Kokoro model
    - engine.py: per-instance synthesis (batch and streaming)
    - pool.py: round-robin pool of engines for the server
"""
