import pytest
from fastapi.testclient import TestClient

from main import create_app
from orchestrator import ReflectionOrchestrator
from schemas import AIReply
from settings import Settings
from storage import MemoryStorage


class ScriptedResponder:
    """Stands in for the language model; replays canned replies in order."""

    def __init__(self, *replies):
        self.replies = list(replies)
        self.calls = []

    async def respond(self, history):
        self.calls.append(list(history))
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return AIReply.model_validate(reply)


def make_reply(progress=20, show=False, query=None, message="Let's explore this together."):
    data = {
        "message": message,
        "options": ["That's a meaningful feeling", "I want to look deeper"],
        "progressPercentage": progress,
        "shouldShowShloka": show,
    }
    if query is not None:
        data["shlokaQuery"] = query
    return data


@pytest.fixture
def reply():
    return make_reply


@pytest.fixture
def scripted():
    return ScriptedResponder


@pytest.fixture
def settings():
    return Settings(_env_file=None, ANTHROPIC_API_KEY="test-key", DATABASE_URL="", AI_TIMEOUT_SECONDS=2.0)


@pytest.fixture
def storage():
    return MemoryStorage()


@pytest.fixture
def make_orchestrator(storage, settings):
    def build(*replies, **overrides):
        cfg = settings.model_copy(update=overrides) if overrides else settings
        return ReflectionOrchestrator(storage, ScriptedResponder(*replies), cfg)
    return build


@pytest.fixture
def make_client(storage, settings):
    def build(*replies):
        app = create_app(settings=settings, storage=storage, responder=ScriptedResponder(*replies))
        return TestClient(app)
    return build
