import os
import stat
import threading
import time

import pytest
import requests

from tests.support.stubs import FakeHttpResponse, FakeSession, script_source, write_tool_script

WORKING = script_source('print("2024.01.01")\n').encode()
BROKEN = script_source('sys.exit(3)\n').encode()


def _provisioner(settings, session):
    from tuberelay.tooling.provisioner import ToolProvisioner

    return ToolProvisioner(settings, session=session)


@pytest.mark.unit
def test_absent_binary_is_fetched_made_executable_and_verified(settings):
    session = FakeSession(FakeHttpResponse(200, WORKING))
    prov = _provisioner(settings, session)

    binary = prov.ensure()

    assert binary.path == os.path.join(settings.bin_dir, "yt-dlp")
    assert os.path.isfile(binary.path)
    assert os.stat(binary.path).st_mode & stat.S_IXUSR
    assert binary.verified is True
    assert binary.version == "2024.01.01"
    assert len(session.calls) == 1
    url, kwargs = session.calls[0]
    assert url == settings.release_url
    assert url.startswith("https://")
    assert kwargs["allow_redirects"] is True
    assert not os.path.exists(binary.path + ".part")


@pytest.mark.unit
def test_second_ensure_does_not_fetch_again(settings):
    session = FakeSession(FakeHttpResponse(200, WORKING))
    prov = _provisioner(settings, session)

    prov.ensure()
    prov.ensure()

    assert len(session.calls) == 1
    assert prov.binary.verified is True


@pytest.mark.unit
def test_present_working_binary_gets_exec_bit_without_fetch(settings):
    path = write_tool_script(settings.bin_dir, 'print("2023.12.30")\n')
    os.chmod(path, 0o644)
    session = FakeSession()

    binary = _provisioner(settings, session).ensure()

    assert session.calls == []
    assert os.stat(path).st_mode & stat.S_IXUSR
    assert binary.version == "2023.12.30"


@pytest.mark.unit
def test_broken_binary_is_replaced_once(settings):
    write_tool_script(settings.bin_dir, "sys.exit(1)\n")
    session = FakeSession(FakeHttpResponse(200, WORKING))

    binary = _provisioner(settings, session).ensure()

    assert len(session.calls) == 1
    assert binary.verified is True
    with open(binary.path, "rb") as fh:
        assert fh.read() == WORKING


@pytest.mark.unit
def test_replacement_that_also_fails_verification_is_fatal(settings):
    from tuberelay.errors import ProvisionError

    write_tool_script(settings.bin_dir, "sys.exit(1)\n")
    session = FakeSession(FakeHttpResponse(200, BROKEN), FakeHttpResponse(200, WORKING))
    prov = _provisioner(settings, session)

    with pytest.raises(ProvisionError):
        prov.ensure()

    # Exactly one retry, and the broken download is not left behind
    assert len(session.calls) == 1
    assert not os.path.exists(prov.path)
    assert prov.binary.verified is False


@pytest.mark.unit
def test_non_success_status_raises_provision_error(settings):
    from tuberelay.errors import ProvisionError

    prov = _provisioner(settings, FakeSession(FakeHttpResponse(404)))

    with pytest.raises(ProvisionError, match="404"):
        prov.ensure()
    assert not os.path.exists(prov.path)
    assert not os.path.exists(prov.path + ".part")


@pytest.mark.unit
def test_network_error_raises_provision_error(settings):
    from tuberelay.errors import ProvisionError

    prov = _provisioner(settings, FakeSession(requests.ConnectionError("down")))

    with pytest.raises(ProvisionError, match="down"):
        prov.ensure()


@pytest.mark.unit
def test_bin_dir_is_created_recursively(settings):
    nested = settings.model_copy(update={"bin_dir": os.path.join(settings.bin_dir, "a", "b")})
    prov = _provisioner(nested, FakeSession(FakeHttpResponse(200, WORKING)))

    prov.ensure()

    assert os.path.isdir(nested.bin_dir)


@pytest.mark.unit
def test_concurrent_first_time_ensure_fetches_once(settings):
    class SlowSession(FakeSession):
        def get(self, url, **kwargs):
            time.sleep(0.2)
            return super().get(url, **kwargs)

    session = SlowSession(FakeHttpResponse(200, WORKING), FakeHttpResponse(200, WORKING))
    prov = _provisioner(settings, session)
    errors = []

    def _run():
        try:
            prov.ensure()
        except Exception as exc:  # pragma: no cover - surfaced by assertion below
            errors.append(exc)

    threads = [threading.Thread(target=_run) for _ in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=30)

    assert errors == []
    assert len(session.calls) == 1


@pytest.mark.unit
def test_windows_platform_uses_exe_asset(settings):
    from tuberelay.settings import AppSettings
    from tuberelay.tooling.provisioner import ToolProvisioner

    win = AppSettings.model_validate({**settings.model_dump(), "platform": "win32", "release_url": None})
    prov = ToolProvisioner(win, session=FakeSession())

    assert prov.binary.filename == "yt-dlp.exe"
    assert prov.path.endswith("yt-dlp.exe")
    assert win.release_url.endswith("/yt-dlp.exe")


@pytest.mark.unit
def test_verified_binary_is_rechecked_in_parallel(settings):
    write_tool_script(settings.bin_dir, 'time.sleep(1)\nprint("2024.01.01")\n')
    session = FakeSession()
    prov = _provisioner(settings, session)
    prov.ensure()
    errors = []

    def _run():
        try:
            prov.ensure()
        except Exception as exc:  # pragma: no cover - surfaced by assertion below
            errors.append(exc)

    threads = [threading.Thread(target=_run) for _ in range(4)]
    started = time.monotonic()
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=30)
    elapsed = time.monotonic() - started

    assert errors == []
    assert session.calls == []
    # Four serialized checks would take at least 4s
    assert elapsed < 3.0
    assert prov.binary.verified is True
