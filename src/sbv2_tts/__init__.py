"""
sbv2-tts: Style-Bert-VITS2 model holder.

Loads any number of VITS2 voice models next to one shared BERT encoder and
turns text into raw audio:

    - Text front end: normalization, grapheme-to-phoneme analysis and
      alignment of per-character BERT features to phoneme positions
    - Style control: blend of a model's neutral style towards a target style
    - Model registry: load/unload voice models by identifier at runtime
    - ONNX Runtime inference with configurable execution providers
    - Structured logging and Prometheus metrics

Example Usage:
    >>> from sbv2_tts.tts.holder import TTSModelHolder
    >>>
    >>> holder = TTSModelHolder.from_bytes(bert_bytes, tokenizer_bytes, analyzer=my_g2p)
    >>> holder.load("amitaro", style_bytes, vits2_bytes)
    >>> raw = holder.synthesize_text("amitaro", "こんにちは")
"""

__version__ = "0.1.0"
__all__ = ["__version__"]
