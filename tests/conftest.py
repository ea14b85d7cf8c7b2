import os
import sys

import pytest

# Ensure project root is on sys.path so 'app', 'config', and 'tuberelay' import correctly
_TESTS_DIR = os.path.dirname(__file__)
_ROOT_DIR = os.path.abspath(os.path.join(_TESTS_DIR, os.pardir))
if _ROOT_DIR not in sys.path:
    sys.path.insert(0, _ROOT_DIR)

from tests.support import stubs as test_stubs


def pytest_collection_modifyitems(config, items):
    # Scripted tool binaries rely on shebang execution
    if os.name != "nt":
        return
    skip = pytest.mark.skip(reason="scripted tool binaries need a POSIX shebang")
    for item in items:
        if "fake_tool" in getattr(item, "fixturenames", ()):
            item.add_marker(skip)


@pytest.fixture(autouse=True)
def _isolate_env(monkeypatch, tmp_path_factory):
    """Keep any accidental Config-driven paths inside a temp directory."""
    root = tmp_path_factory.mktemp("env")
    monkeypatch.setenv("BASE_OUTPUT_DIR", str(root / "downloads"))
    monkeypatch.setenv("YTDLP_BIN_DIR", str(root / "bin"))
    yield


@pytest.fixture
def settings(tmp_path):
    from tuberelay.settings import load_app_settings

    return load_app_settings({
        "base_output_dir": str(tmp_path / "downloads"),
        "bin_dir": str(tmp_path / "bin"),
        "platform": "linux",
        "invocation_timeout_seconds": 30,
        "stream_chunk_size": 4096,
    })


@pytest.fixture
def fake_tool(tmp_path):
    """Path to a scripted yt-dlp stand-in (see tests.support.stubs.FAKE_YTDLP_BODY)."""
    return test_stubs.write_tool_script(tmp_path / "fake-bin", test_stubs.FAKE_YTDLP_BODY)


@pytest.fixture
def stub_provisioner(fake_tool):
    return test_stubs.StubProvisioner(fake_tool)


@pytest.fixture
def coordinator(settings, stub_provisioner):
    from tuberelay.downloads import JobCoordinator, WorkspaceManager

    return JobCoordinator(
        settings=settings,
        provisioner=stub_provisioner,
        workspaces=WorkspaceManager(settings.base_output_dir),
    )


@pytest.fixture
def app(settings, stub_provisioner):
    import app as app_module

    application = app_module.create_app(settings=settings, provisioner=stub_provisioner)
    application.config.update(TESTING=True)
    yield application


@pytest.fixture
def client(app):
    return app.test_client()
