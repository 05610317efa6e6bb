import pytest

from fakes import image_data, step_json, theme_json
from storyquest.common import (
    ImageUnavailable,
    MalformedResponseError,
    ServiceError,
    StoryNotStartedError,
    StoryStateError,
    TransportError,
)
from storyquest.pipeline import EnginePhase
from storyquest.story_generation import OPENING_CHOICE, StoryConfig


def start_story(engine, completion, *, first_step=None):
    completion.queue(theme_json(), first_step or step_json(1))
    return engine.start()


def test_start_generates_themes_then_first_page(engine, completion, illustrator):
    page = start_story(engine, completion)

    assert engine.phase is EnginePhase.AWAITING_CHOICE
    assert engine.themes.themes[0] == "Courage"
    assert page.choice == OPENING_CHOICE
    assert page.story_text == "Page 1 of the adventure."
    assert page.image_url == image_data(1)
    assert engine.state.pages == (page,)
    assert engine.state.current_page_index == 0
    assert not engine.state.is_loading
    assert illustrator.prompts == [
        "Scene 1 on the prairie in Watercolor style. Detailed, consistent characters, full scene."
    ]
    assert len(completion.calls) == 2
    assert all(call["json_output"] for call in completion.calls)
    assert completion.calls[0]["model"] == "test-model"


def test_start_twice_is_rejected(engine, completion):
    start_story(engine, completion)
    with pytest.raises(StoryStateError):
        engine.start()


def test_submit_before_start_is_rejected(engine):
    with pytest.raises(StoryNotStartedError):
        engine.submit_choice("Look around")


def test_choices_advance_the_story(engine, completion):
    start_story(engine, completion)
    completion.queue(step_json(2))

    page = engine.submit_choice("  Follow the tracks  ")

    assert page.choice == "Follow the tracks"
    assert engine.state.page_count == 2
    assert engine.state.current_page_index == 1
    assert "Summary after page 1." in completion.calls[-1]["messages"][0]["content"]


def test_pages_grow_append_only(engine, completion):
    start_story(engine, completion)
    snapshots = [engine.state.pages]
    for number in (2, 3, 4):
        completion.queue(step_json(number))
        engine.submit_choice(f"choice {number}")
        snapshots.append(engine.state.pages)

    for earlier, later in zip(snapshots, snapshots[1:]):
        assert len(later) == len(earlier) + 1
        assert later[: len(earlier)] == earlier


def test_single_step_story_ends_after_first_page(make_engine, completion):
    engine = make_engine(StoryConfig(topic="Dragons", max_steps=1))

    start_story(engine, completion, first_step=step_json(1, isGameOver=False))

    assert engine.state.is_game_over
    assert engine.phase is EnginePhase.COMPLETE
    assert engine.submit_choice("One more page") is None
    assert len(completion.calls) == 2


def test_step_cap_forces_termination(make_engine, completion):
    engine = make_engine(StoryConfig(topic="Dragons", max_steps=3))
    start_story(engine, completion)
    completion.queue(step_json(2), step_json(3))

    engine.submit_choice("Go north")
    assert not engine.state.is_game_over
    engine.submit_choice("Cross the river")

    assert engine.state.is_game_over
    assert engine.is_complete


def test_model_can_end_the_story_early(engine, completion):
    start_story(engine, completion)
    completion.queue(step_json(2, isGameOver=True, question=""))

    page = engine.submit_choice("Offer the gift")

    assert page.question == ""
    assert engine.state.is_game_over
    assert engine.state.page_count == 2
    assert engine.config.max_steps == 5


def test_game_over_never_reverts(engine, completion):
    start_story(engine, completion)
    completion.queue(step_json(2, isGameOver=True))
    engine.submit_choice("Finish")

    assert engine.submit_choice("Keep going") is None
    assert engine.retry_last_choice() is None
    assert engine.state.is_game_over
    engine.select_page(0)
    assert engine.state.is_game_over


def test_blank_input_is_rejected_locally(engine, completion):
    start_story(engine, completion)
    calls_before = len(completion.calls)

    assert engine.submit_choice("   \t ") is None
    assert engine.submit_choice("") is None

    assert len(completion.calls) == calls_before
    assert engine.state.page_count == 1


def test_missing_image_prompt_leaves_state_unchanged(engine, completion, illustrator, sleeps):
    start_story(engine, completion)
    completion.queue(step_json(2, drop=("imagePrompt",)))

    with pytest.raises(MalformedResponseError):
        engine.submit_choice("Follow the tracks")

    assert engine.state.page_count == 1
    assert not engine.state.is_loading
    assert "imagePrompt" in engine.state.last_error
    assert engine.phase is EnginePhase.AWAITING_CHOICE
    assert sleeps == []
    assert len(illustrator.prompts) == 1


def test_exhausted_text_retries_keep_page_count(engine, completion, sleeps):
    start_story(engine, completion)
    completion.queue(*[TransportError("Server Error: 503") for _ in range(4)])

    with pytest.raises(ServiceError):
        engine.submit_choice("Follow the tracks")

    assert engine.state.page_count == 1
    assert not engine.state.is_loading
    assert engine.last_error == "Server Error: 503"
    assert sleeps == pytest.approx([1.5, 2.25, 3.375])


def test_failed_step_can_be_retried_by_the_reader(engine, completion):
    start_story(engine, completion)
    completion.queue(step_json(2, drop=("updatedSummary",)), step_json(2))

    with pytest.raises(MalformedResponseError):
        engine.submit_choice("Follow the tracks")
    page = engine.retry_last_choice()

    assert page.choice == "Follow the tracks"
    assert engine.state.page_count == 2
    assert engine.state.last_error is None


def test_missing_image_still_commits_page(engine, completion, illustrator):
    illustrator.failures.append(ImageUnavailable("The image model returned no image."))

    page = start_story(engine, completion)

    assert page.image_url is None
    assert engine.state.page_count == 1
    assert engine.phase is EnginePhase.AWAITING_CHOICE
    assert len(illustrator.prompts) == 1


def test_image_transport_failures_are_retried_then_skipped(make_engine, completion, illustrator, sleeps):
    engine = make_engine(StoryConfig(topic="Dragons", max_steps=1))
    illustrator.failures.extend(TransportError("Replicate request failed") for _ in range(4))

    page = start_story(engine, completion)

    assert page.image_url is None
    assert len(illustrator.prompts) == 4
    assert len(sleeps) == 3
    assert engine.state.is_game_over


def test_pages_without_images_do_not_break_history(engine, completion, illustrator):
    illustrator.failures.extend([None, ImageUnavailable("none")])
    start_story(engine, completion)
    completion.queue(step_json(2), step_json(3))
    engine.submit_choice("two")

    engine.submit_choice("three")

    user_parts = completion.calls[-1]["messages"][1]["content"]
    images = [part["image_url"]["url"] for part in user_parts if part["type"] == "image_url"]
    assert images == [image_data(1)]


def test_image_history_sent_with_text_call_is_bounded(engine, completion):
    start_story(engine, completion)
    for number in (2, 3, 4, 5):
        completion.queue(step_json(number))
        engine.submit_choice(f"choice {number}")

    last_messages = completion.calls[-1]["messages"]
    image_parts = [part for part in last_messages[1]["content"] if part["type"] == "image_url"]
    assert len(image_parts) == 3
    assert [part["image_url"]["url"] for part in image_parts] == [
        image_data(2),
        image_data(3),
        image_data(4),
    ]


def test_initialization_failure_enters_error_phase(engine, completion, sleeps):
    completion.queue(*[RuntimeError("connection refused") for _ in range(4)])

    with pytest.raises(ServiceError):
        engine.start()

    assert engine.phase is EnginePhase.ERROR
    assert engine.state is None
    assert engine.last_error == "connection refused"
    assert len(sleeps) == 3
    with pytest.raises(StoryStateError):
        engine.submit_choice("Hello")


def test_malformed_themes_are_not_retried(engine, completion, sleeps):
    completion.queue(theme_json(storyEndingGoal=None))

    with pytest.raises(MalformedResponseError):
        engine.start()

    assert engine.phase is EnginePhase.ERROR
    assert len(completion.calls) == 1
    assert sleeps == []


def test_first_page_failure_requires_restart(engine, completion):
    completion.queue(theme_json(), "```json\nnot json\n```")

    with pytest.raises(MalformedResponseError):
        engine.start()

    assert engine.phase is EnginePhase.ERROR
    assert engine.state.page_count == 0
    assert not engine.state.is_loading
    with pytest.raises(StoryStateError):
        engine.retry_last_choice()


def test_progress_callback_reports_stages(make_engine, completion, progress_events):
    engine = make_engine(StoryConfig(topic="Dragons", max_steps=1))

    start_story(engine, completion)

    stages = [stage for stage, _ in progress_events]
    assert stages == [
        "themes:generating",
        "themes:ready",
        "step:generating",
        "image:generating",
        "step:committed",
        "story:complete",
    ]
    committed = dict(progress_events)["step:committed"]
    assert committed["game_over"] is True
    assert committed["has_image"] is True


class RaisingCallback:
    """Progress callback that raises once it sees the configured stage."""

    def __init__(self, fail_on=None):
        self.fail_on = fail_on
        self.stages = []

    def __call__(self, stage, payload):
        self.stages.append(stage)
        if stage == self.fail_on:
            raise RuntimeError(f"display failed on {stage}")


def test_failing_progress_callback_releases_the_step(make_engine, config, completion, illustrator):
    callback = RaisingCallback()
    engine = make_engine(config, progress_callback=callback)
    start_story(engine, completion)
    callback.fail_on = "image:generating"
    completion.queue(step_json(2))

    with pytest.raises(RuntimeError):
        engine.submit_choice("Follow the tracks")

    assert not engine.state.is_loading
    assert engine.phase is EnginePhase.AWAITING_CHOICE
    assert engine.state.page_count == 1
    assert engine.last_error == "display failed on image:generating"
    assert "step:failed" in callback.stages

    callback.fail_on = None
    completion.queue(step_json(2))
    page = engine.retry_last_choice()

    assert page is not None
    assert page.choice == "Follow the tracks"
    assert engine.state.page_count == 2
    assert engine.state.last_error is None
    assert len(illustrator.prompts) == 2


def test_failing_progress_callback_during_start_enters_error_phase(make_engine, config, completion):
    engine = make_engine(config, progress_callback=RaisingCallback("themes:ready"))
    completion.queue(theme_json())

    with pytest.raises(RuntimeError):
        engine.start()

    assert engine.phase is EnginePhase.ERROR
    assert engine.state is None
    assert engine.last_error == "display failed on themes:ready"
    with pytest.raises(StoryStateError):
        engine.submit_choice("Hello")


def test_choice_submitted_while_a_step_runs_is_ignored(make_engine, config, completion):
    nested_results = []
    engine = None

    def callback(stage, payload):
        if stage == "step:generating" and payload["step_number"] == 2:
            nested_results.append(engine.submit_choice("Sneak ahead"))

    engine = make_engine(config, progress_callback=callback)
    start_story(engine, completion)
    completion.queue(step_json(2))

    page = engine.submit_choice("Follow the tracks")

    assert nested_results == [None]
    assert len(completion.calls) == 3
    assert page.choice == "Follow the tracks"
    assert engine.state.page_count == 2
    assert not engine.state.is_loading
