"""
Run an imitation session against the game on screen.

Usage:
    python -m imitation_agent.run

Play with the arrow keys while frames are captured, then:
    T   = train on the captured frames
    E   = predict a direction from the current screen
    M   = toggle the machine-view preview window
    S   = save replay buffer / checkpoint
    ESC = quit
"""

import argparse
import asyncio
import logging
import sys
import time
from pathlib import Path


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Imitation-learning direction classifier")
    parser.add_argument(
        "--preset",
        choices=["default", "fast", "long"],
        default="default",
        help="Base configuration (default: default)",
    )
    parser.add_argument("--samples", type=int, help="Frames to capture (default: preset)")
    parser.add_argument("--interval", type=float, help="Seconds between captures (default: preset)")
    parser.add_argument("--batch-size", type=int, help="Batch size passed to fit (default: preset)")
    parser.add_argument(
        "--monitor",
        type=int,
        default=1,
        help="Monitor to capture (default: 1)",
    )
    parser.add_argument(
        "--letterbox",
        action="store_true",
        help="True = cover/crop: fill the canvas and crop the overflow when sampling. "
             "Without it frames are fitted inside the canvas with black bars",
    )
    parser.add_argument(
        "--delay",
        type=int,
        default=3,
        help="Seconds to wait before starting (default: 3)",
    )
    parser.add_argument("--checkpoint", type=Path, help="Classifier checkpoint to load/save")
    parser.add_argument("--replay", type=Path, help="Replay buffer .npz to load/save")
    parser.add_argument(
        "--predict-image",
        type=Path,
        help="Predict a direction for one image file and exit",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    return parser


def build_config(args):
    from .train.config import PRESETS, SessionConfig

    overrides = PRESETS[args.preset].to_dict()
    if args.samples is not None:
        overrides["max_samples"] = args.samples
    if args.interval is not None:
        overrides["sample_interval"] = args.interval
    if args.batch_size is not None:
        overrides["batch_size"] = args.batch_size
    if args.letterbox:
        overrides["letterbox"] = True
    return SessionConfig.from_dict(overrides)


def load_classifier(args, config):
    from .train.model import TorchClassifier

    if args.checkpoint and args.checkpoint.exists():
        return TorchClassifier.load(args.checkpoint, device=config.device)
    return TorchClassifier(learning_rate=config.learning_rate, device=config.device)


async def predict_image(args, config) -> int:
    from .agent import DirectionPredictor
    from .vision import load_image

    classifier = load_classifier(args, config)
    predictor = DirectionPredictor(classifier, config)
    direction = await predictor.predict_direction(load_image(args.predict_image))
    print(f"Prediction: {direction}")
    return 0


async def run_session(args, config) -> int:
    from .agent import ImitationSession
    from .control import DirectionState, KeyStateTracker
    from .train.replay import ReplayBuffer
    from .visualize import PreviewWindow
    from .vision import ScreenCapture

    classifier = load_classifier(args, config)
    print(f"[+] {classifier.summary()}")

    buffer = None
    if args.replay and args.replay.exists():
        buffer = ReplayBuffer.load(args.replay, max_size=config.max_buffer_size)

    state = DirectionState()
    capture = ScreenCapture(monitor=args.monitor)
    preview = PreviewWindow()
    session = ImitationSession(
        config,
        capture,
        state,
        classifier,
        display=preview,
        buffer=buffer,
        replay_path=args.replay,
        checkpoint_path=args.checkpoint,
    )

    loop = asyncio.get_running_loop()
    tracker = KeyStateTracker(
        state,
        hotkeys={
            't': lambda: session.handle_command("train"),
            'e': lambda: session.handle_command("evaluate"),
            'm': lambda: session.handle_command("preview"),
            's': lambda: session.handle_command("save"),
            'esc': lambda: session.handle_command("stop"),
        },
        loop=loop,
    )
    tracker.start()

    print("=" * 50)
    print("CONTROLS:")
    print("  Arrows = move (recorded as labels)")
    print("  T = train   E = predict   M = preview")
    print("  S = save    ESC = quit")
    print("=" * 50)

    try:
        await session.run_until_stopped()
    finally:
        tracker.stop()
        preview.close()
        capture.close()
        session.save()

    print(f"[+] Session finished with {len(session.buffer)} replay entries")
    return 0


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    config = build_config(args)

    if args.predict_image:
        return asyncio.run(predict_image(args, config))

    print(f"Starting capture in {args.delay} seconds...")
    print("Switch to the game window NOW!")

    for i in range(args.delay, 0, -1):
        print(f"  {i}...")
        time.sleep(1)

    try:
        return asyncio.run(run_session(args, config))
    except KeyboardInterrupt:
        print("\nStopping...")
        return 130


if __name__ == "__main__":
    sys.exit(main())
