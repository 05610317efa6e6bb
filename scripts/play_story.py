"""
Play an interactive StoryQuest adventure in the terminal.

Usage:
    python scripts/play_story.py \
        --topic "Native American hunters" \
        --language English \
        --max-steps 8 \
        --art-style Watercolor \
        --output story_transcript.yaml

Environment variables:
    STORYQUEST_TEXT_MODEL / LITELLM_MODEL  - text model (default gemini/gemini-2.5-flash)
    GEMINI_API_KEY or STORYQUEST_API_KEY   - key for the text model
    REPLICATE_API_TOKEN                    - required for illustrations
    REPLICATE_MODEL                        - image model (default google/imagen-4)
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Any, Dict

from tqdm.auto import tqdm

# Ensure project root is on the Python path when running as a script.
PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from storyquest import (  # noqa: E402
    NarrativeEngine,
    ReplicateIllustrator,
    StoryTranscript,
    StoryWriter,
)
from storyquest.common import RetryPolicy, StoryEngineError  # noqa: E402
from storyquest.story_generation import (  # noqa: E402
    DEFAULT_MAX_STEPS,
    MAX_STEPS_LIMIT,
    ArtStyle,
    Language,
    Page,
    StoryConfig,
    load_story_config,
)

QUIT_COMMANDS = {":q", ":quit", ":exit"}
RETRY_COMMAND = ":retry"


class ProgressTracker:
    """
    Provides user-friendly command-line progress updates for a story session.
    """

    def __init__(self) -> None:
        self._step_bar: tqdm | None = None

    def __call__(self, stage: str, payload: Dict[str, Any]) -> None:
        match stage:
            case "themes:generating":
                self._write(f"Crafting story themes and goals for {payload.get('topic')!r}...")
            case "themes:ready":
                self._write("Themes: " + ", ".join(payload.get("themes") or []))
                self._write(f"Goal  : {payload.get('ending_goal', '')}")
            case "step:generating":
                if self._step_bar is None:
                    self._step_bar = tqdm(
                        total=payload.get("max_steps"), desc="Story pages", unit="page"
                    )
                self._step_bar.set_description(
                    f"Writing page {payload.get('step_number')}"
                )
            case "image:generating":
                if self._step_bar is not None:
                    self._step_bar.set_description("Painting scene")
            case "image:unavailable":
                self._write(f"(No illustration for this page: {payload.get('error')})")
            case "step:committed":
                if self._step_bar is not None:
                    self._step_bar.update(1)
            case "step:failed" | "story:failed":
                self._write(f"Error: {payload.get('error')}")
            case "story:complete":
                self.close()

    def close(self) -> None:
        if self._step_bar is not None:
            self._step_bar.close()
            self._step_bar = None

    @staticmethod
    def _write(message: str) -> None:
        tqdm.write(message)


def parse_args(argv: list[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Play an illustrated, choice-driven story.")
    parser.add_argument("--config", default=None, help="YAML/JSON file with story settings.")
    parser.add_argument("--topic", default=None, help="What the story is about.")
    parser.add_argument(
        "--language",
        default=Language.ENGLISH.value,
        choices=[language.value for language in Language],
    )
    parser.add_argument(
        "--max-steps",
        type=int,
        default=DEFAULT_MAX_STEPS,
        help=f"Maximum number of pages (clamped to {MAX_STEPS_LIMIT}).",
    )
    parser.add_argument(
        "--art-style",
        default=ArtStyle.WATERCOLOR.value,
        choices=[style.value for style in ArtStyle],
    )
    parser.add_argument("--extra-details", default="", help="Optional tone, values, or elements.")
    parser.add_argument("--text-model", default=None, help="Override the LiteLLM text model.")
    parser.add_argument("--image-model", default=None, help="Override the Replicate model.")
    parser.add_argument("--retries", type=int, default=3, help="Retries per generation call.")
    parser.add_argument(
        "--output",
        default=None,
        help="Optional YAML file to store the story transcript when the session ends.",
    )
    parser.add_argument(
        "--images-dir",
        default=None,
        help="Optional directory where page illustrations are written as PNG files.",
    )
    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
    )
    return parser.parse_args(argv)


def build_config(args: argparse.Namespace) -> StoryConfig:
    if args.config:
        return load_story_config(args.config)
    if not args.topic:
        raise SystemExit("Either --topic or --config is required.")
    return StoryConfig(
        topic=args.topic,
        language=args.language,
        max_steps=args.max_steps,
        extra_details=args.extra_details,
        art_style=args.art_style,
    )


def render_page(page: Page, step_number: int, max_steps: int) -> None:
    tqdm.write("")
    tqdm.write(f"--- Step {step_number} of {max_steps} ---")
    tqdm.write(page.story_text)
    tqdm.write("")
    tqdm.write(f"Did you know? {page.educational_fact}")
    if not page.has_image:
        tqdm.write("(illustration unavailable)")
    if page.question:
        tqdm.write("")
        tqdm.write(page.question)


def main(argv: list[str]) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
    )

    config = build_config(args)
    tracker = ProgressTracker()
    engine = NarrativeEngine(
        config,
        writer=StoryWriter(model=args.text_model),
        illustrator=ReplicateIllustrator(model_identifier=args.image_model),
        retry_policy=RetryPolicy(retries=max(0, args.retries)),
        progress_callback=tracker,
    )

    exit_code = 0
    try:
        page = engine.start()
        render_page(page, 1, config.max_steps)
        while not engine.is_complete:
            try:
                user_input = input("\nWhat do you want to do? > ")
            except EOFError:
                break
            command = user_input.strip().lower()
            if command in QUIT_COMMANDS:
                break
            try:
                if command == RETRY_COMMAND:
                    page = engine.retry_last_choice()
                else:
                    page = engine.submit_choice(user_input)
            except StoryEngineError:
                tqdm.write(f"Type {RETRY_COMMAND} to try again or :quit to stop.")
                continue
            if page is not None:
                render_page(page, engine.state.page_count, config.max_steps)

        if engine.is_complete:
            tqdm.write("\nThe End! The story has come to an end.")
    except StoryEngineError as exc:
        tqdm.write(f"Failed to start the story: {exc.message}")
        exit_code = 1
    finally:
        tracker.close()

    transcript = StoryTranscript.from_engine(engine)
    if args.output:
        output_path = Path(args.output)
        output_path.write_text(transcript.to_yaml(), encoding="utf-8")
        tqdm.write(f"Saved story transcript to {output_path}")
    if args.images_dir:
        written = transcript.write_images(args.images_dir)
        tqdm.write(f"Saved {len(written)} illustration(s) to {args.images_dir}")

    return exit_code


if __name__ == "__main__":
    raise SystemExit(main(sys.argv[1:]))
