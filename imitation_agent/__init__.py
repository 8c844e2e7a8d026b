"""
Imitation-learning agent

Records the operator's held direction keys alongside screen captures,
trains a small CNN on the recorded pairs and predicts a direction from
fresh captures.

Modules:
    vision/     - Screen capture and letterbox scaling
    control/    - Direction state and keyboard tracking
    train/      - Replay buffer, configuration, classifier and training loop
    agent/      - Inference and session orchestration
    visualize/  - Preview window for what the classifier sees
"""

__version__ = "0.1.0"
