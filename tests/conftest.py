import pytest

from fakes import FakeIllustrator, ScriptedCompletion
from storyquest.common import RetryDispatcher, RetryPolicy
from storyquest.pipeline import NarrativeEngine
from storyquest.story_generation import StoryConfig, StoryWriter


@pytest.fixture(name="sleeps")
def sleeps_fixture():
    return []


@pytest.fixture(name="dispatcher")
def dispatcher_fixture(sleeps):
    return RetryDispatcher(RetryPolicy(), sleep=sleeps.append)


@pytest.fixture(name="config")
def config_fixture():
    return StoryConfig(topic="Native American hunters", max_steps=5, art_style="Watercolor")


@pytest.fixture(name="completion")
def completion_fixture():
    return ScriptedCompletion()


@pytest.fixture(name="illustrator")
def illustrator_fixture():
    return FakeIllustrator()


@pytest.fixture(name="progress_events")
def progress_events_fixture():
    return []


@pytest.fixture(name="make_engine")
def make_engine_fixture(completion, illustrator, dispatcher, progress_events):
    def _make(config, progress_callback=None):
        return NarrativeEngine(
            config,
            writer=StoryWriter(model="test-model", api_key="test-key", completion_fn=completion),
            illustrator=illustrator,
            dispatcher=dispatcher,
            progress_callback=progress_callback
            or (lambda stage, payload: progress_events.append((stage, payload))),
        )

    return _make


@pytest.fixture(name="engine")
def engine_fixture(make_engine, config):
    return make_engine(config)
