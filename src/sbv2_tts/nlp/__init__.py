"""
Text front-end collaborators.

    - symbols.py: Phoneme inventory and id mapping
    - collaborators.py: Analyzer/tokenizer/encoder interfaces and the
      tokenizers- and ONNX-backed implementations
"""
