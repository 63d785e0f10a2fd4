"""
Model holder and synthesis pipeline.

    - holder.py: TTSModelHolder, the model registry and synthesis entry point
    - alignment.py: Feature alignment (word2ph expansion)
    - style.py: Style table parsing and blending
    - runtime.py: Inference runtime adapter (onnxruntime)
    - concurrency.py: Reader/writer lock for the registry
    - errors.py: Error taxonomy
"""
