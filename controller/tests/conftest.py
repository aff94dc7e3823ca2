import pytest

from controller.src.services.executor import StepExecutor
from controller.src.services.orchestrator import Orchestrator
from controller.tests.fakes import FakeTools, MemoryStore, RecordingBroadcaster


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def broadcaster():
    return RecordingBroadcaster()


@pytest.fixture
def tools():
    return FakeTools()


@pytest.fixture
def workspace_root(tmp_path):
    return str(tmp_path / "workspaces")


@pytest.fixture
def orchestrator(store, broadcaster, tools, workspace_root):
    return Orchestrator(store, broadcaster, StepExecutor(tools.toolbox()), workspace_root=workspace_root)
