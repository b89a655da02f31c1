"""
Utility modules for koko.

    - audio.py: sample buffers, WAV files and streaming frames
    - timeit.py: timing of code blocks
"""
