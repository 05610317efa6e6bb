"""
Narrative progression engine: drives a story session one page at a time.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Callable, Mapping

from storyquest.ai_generation import ReplicateIllustrator, build_illustration_prompt
from storyquest.common import (
    ImageUnavailable,
    RetryDispatcher,
    RetryPolicy,
    ServiceError,
    StoryEngineError,
    StoryNotStartedError,
    StoryStateError,
    describe_failure,
)
from storyquest.common.retry import SleepCallable
from storyquest.story_generation import (
    OPENING_CHOICE,
    Page,
    StoryConfig,
    StoryState,
    StoryWriter,
    ThemeSet,
    build_step_context,
    parse_step_payload,
    parse_theme_payload,
)

ProgressCallback = Callable[[str, dict[str, Any]], None]

logger = logging.getLogger(__name__)


class EnginePhase(str, Enum):
    NOT_STARTED = "not_started"
    INITIALIZING = "initializing"
    GENERATING_STEP = "generating_step"
    AWAITING_CHOICE = "awaiting_choice"
    COMPLETE = "complete"
    ERROR = "error"


class NarrativeEngine:
    """
    Owns one story session and advances it through the text and image services.

    Each step builds the request context, asks the text model for the next page,
    validates the answer, asks the image model for an illustration, and commits the
    page. Only one step runs at a time; once the story is over, pages can still be
    browsed but no more are generated.
    """

    def __init__(
        self,
        config: StoryConfig,
        *,
        writer: StoryWriter | None = None,
        illustrator: ReplicateIllustrator | None = None,
        dispatcher: RetryDispatcher | None = None,
        retry_policy: RetryPolicy | None = None,
        sleep: SleepCallable | None = None,
        image_kwargs: Mapping[str, Any] | None = None,
        progress_callback: ProgressCallback | None = None,
    ) -> None:
        self._config = config
        self._writer = writer or StoryWriter()
        self._illustrator = illustrator or ReplicateIllustrator()
        self._dispatcher = dispatcher or RetryDispatcher(retry_policy, sleep=sleep)
        self._image_kwargs = dict(image_kwargs or {})
        self._progress_callback = progress_callback
        self._phase = EnginePhase.NOT_STARTED
        self._state: StoryState | None = None
        self._error: str | None = None

    @property
    def config(self) -> StoryConfig:
        return self._config

    @property
    def phase(self) -> EnginePhase:
        return self._phase

    @property
    def state(self) -> StoryState | None:
        """Story state, or ``None`` until themes have been generated."""
        return self._state

    @property
    def themes(self) -> ThemeSet | None:
        return self._state.themes if self._state is not None else None

    @property
    def last_error(self) -> str | None:
        if self._state is not None and self._state.last_error:
            return self._state.last_error
        return self._error

    @property
    def is_complete(self) -> bool:
        return self._phase is EnginePhase.COMPLETE

    def start(self) -> Page:
        """
        Generate the theme set, then the opening page.

        Any failure leaves the engine in the ``ERROR`` phase; a new engine is needed.
        """
        if self._phase is not EnginePhase.NOT_STARTED:
            raise StoryStateError("The story has already been started.")

        self._phase = EnginePhase.INITIALIZING
        self._error = None

        try:
            self._notify("themes:generating", topic=self._config.topic)
            raw_text = self._dispatcher.call(
                lambda: self._writer.request_themes(self._config),
                label="theme generation",
            )
            themes = parse_theme_payload(raw_text)
            self._notify(
                "themes:ready",
                themes=list(themes.themes),
                ending_goal=themes.ending_goal,
            )
        except Exception as exc:
            self._phase = EnginePhase.ERROR
            if isinstance(exc, StoryEngineError):
                self._error = exc.message
                logger.error("Story initialization failed: %s", exc.message)
            else:
                self._error = describe_failure(exc)
                logger.exception("Unexpected failure while initializing the story")
            self._notify("story:failed", error=self._error)
            raise

        self._state = StoryState(themes)
        logger.info(
            "Story initialized with %d theme(s); goal: %s", len(themes.themes), themes.ending_goal
        )

        return self._run_step(OPENING_CHOICE)

    def submit_choice(self, text: str) -> Page | None:
        """
        Generate the next page from the reader's input.

        Blank input, a step already in flight, or a finished story are rejected
        locally and ``None`` is returned without calling any service.
        """
        state = self._require_state()
        choice = (text or "").strip()
        if not choice:
            logger.debug("Ignoring empty reader input.")
            return None
        if not state.can_accept_choice():
            logger.debug(
                "Ignoring reader input (loading=%s, game_over=%s).",
                state.is_loading,
                state.is_game_over,
            )
            return None

        return self._run_step(choice)

    def retry_last_choice(self) -> Page | None:
        """
        Resubmit the input of the step that last failed, if any.
        """
        state = self._require_state()
        if not state.last_error or not state.last_choice:
            return None
        return self.submit_choice(state.last_choice)

    def select_page(self, index: int) -> Page:
        """Move the browsing cursor to an already generated page."""
        return self._require_state().select_page(index)

    def _require_state(self) -> StoryState:
        if self._phase is EnginePhase.ERROR:
            raise StoryStateError(
                f"The story could not be started ({self._error}). Start a new session."
            )
        if self._state is None:
            raise StoryNotStartedError("Call start() before submitting choices.")
        return self._state

    def _run_step(self, choice: str) -> Page:
        state = self._state
        assert state is not None

        state.begin_step(choice)
        self._phase = EnginePhase.GENERATING_STEP
        step_number = state.next_step_number

        # Every failure before the commit must release the step.
        try:
            self._notify(
                "step:generating",
                step_number=step_number,
                max_steps=self._config.max_steps,
                choice=choice,
            )
            context = build_step_context(state, self._config, state.themes, choice)
            raw_text = self._dispatcher.call(
                lambda: self._writer.request_step(context),
                label=f"step {step_number} text generation",
            )
            payload = parse_step_payload(raw_text)
            image_url = self._illustrate(payload.image_prompt, step_number)

            page = Page(
                story_text=payload.story_text,
                educational_fact=payload.educational_fact,
                question=payload.question,
                image_url=image_url,
                choice=choice,
                updated_summary=payload.updated_summary,
            )
            game_over = payload.is_game_over or step_number >= self._config.max_steps
            state.commit_page(page, game_over=game_over)
        except Exception as exc:
            self._fail_step(state, step_number, exc)
            raise

        self._phase = EnginePhase.COMPLETE if state.is_game_over else EnginePhase.AWAITING_CHOICE
        self._notify(
            "step:committed",
            step_number=step_number,
            max_steps=self._config.max_steps,
            has_image=page.has_image,
            game_over=state.is_game_over,
        )

        if state.is_game_over:
            logger.info(
                "Story complete after %d page(s) (model flag=%s).",
                state.page_count,
                payload.is_game_over,
            )
            self._notify("story:complete", total_pages=state.page_count)

        return page

    def _fail_step(self, state: StoryState, step_number: int, error: Exception) -> None:
        if isinstance(error, StoryEngineError):
            message = error.message
            logger.error("Step %d failed: %s", step_number, message)
        else:
            message = describe_failure(error)
            logger.exception("Unexpected failure while generating step %d", step_number)

        state.fail_step(message)
        # Without a committed page there is nothing to continue from.
        self._phase = EnginePhase.AWAITING_CHOICE if state.page_count else EnginePhase.ERROR
        if self._phase is EnginePhase.ERROR:
            self._error = message
        self._notify("step:failed", step_number=step_number, error=message)

    def _illustrate(self, image_prompt: str, step_number: int) -> str | None:
        prompt = build_illustration_prompt(image_prompt, self._config.art_style)
        self._notify("image:generating", step_number=step_number)
        try:
            return self._dispatcher.call(
                lambda: self._illustrator.generate_image(prompt, **self._image_kwargs),
                label=f"step {step_number} image generation",
            )
        except (ImageUnavailable, ServiceError) as exc:
            logger.warning(
                "Committing step %d without an illustration: %s", step_number, exc.message
            )
            self._notify("image:unavailable", step_number=step_number, error=exc.message)
            return None

    def _notify(self, stage: str, **payload: Any) -> None:
        if self._progress_callback is not None:
            self._progress_callback(stage, payload)
