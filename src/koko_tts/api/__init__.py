"""
FastAPI HTTP layer for koko.

    - openai_compat.py: /v1/audio/speech, /v1/audio/voices, /v1/models
    - routes.py: /health, /metrics
    - schemas.py: request/response models
    - dependencies.py: config and instance pool providers
"""
