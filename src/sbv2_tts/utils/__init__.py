"""
Utility Modules for sbv2-tts.

    - audio.py: Raw float32 audio to WAV
    - text.py: Default text normalizer
    - timeit.py: Stage timing
"""
