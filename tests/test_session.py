import asyncio

import pytest
from pydantic import ValidationError

from compiler.client import CompiledArtifact
from compiler.errors import RemoteCompilationError
from compiler.session import PreviewSession

TEMPLATE = "<FULL_NAME>"


def _resume(name):
    return {"personalInfo": {"fullName": name}}


class EchoCompiler:
    """Returns the filled document as the artifact; fails on request."""

    def __init__(self):
        self.fail_with = None

    async def compile(self, latex: str) -> CompiledArtifact:
        if self.fail_with:
            raise RemoteCompilationError(self.fail_with)
        return CompiledArtifact(data=latex.encode("utf-8"))


class GatedCompiler:
    """Each compile waits until the test opens its gate."""

    def __init__(self):
        self.gates = []

    async def compile(self, latex: str) -> CompiledArtifact:
        gate = asyncio.Event()
        self.gates.append(gate)
        await gate.wait()
        if latex == "broken":
            raise RemoteCompilationError("broken")
        return CompiledArtifact(data=latex.encode("utf-8"))


def test_refresh_creates_handle(tmp_path):
    session = PreviewSession(EchoCompiler(), handle_dir=tmp_path)
    result = asyncio.run(session.refresh(TEMPLATE, _resume("Ada")))
    assert result.ok
    assert result.sequence == 1
    assert result.latex == "Ada"
    assert result.handle is session.current
    assert result.handle.path.read_bytes() == b"Ada"
    assert result.handle.path.suffix == ".pdf"
    assert result.source is session.current_source
    assert result.source.path.read_text(encoding="utf-8") == "Ada"


def test_new_preview_releases_previous_handle(tmp_path):
    session = PreviewSession(EchoCompiler(), handle_dir=tmp_path)
    first = asyncio.run(session.refresh(TEMPLATE, _resume("One")))
    second = asyncio.run(session.refresh(TEMPLATE, _resume("Two")))
    assert first.handle.released
    assert first.source.released
    assert not first.handle.path.exists()
    assert sorted(tmp_path.iterdir()) == sorted([second.handle.path, second.source.path])


def test_failure_releases_previous_handle(tmp_path):
    compiler = EchoCompiler()
    session = PreviewSession(compiler, handle_dir=tmp_path)
    ok = asyncio.run(session.refresh(TEMPLATE, _resume("One")))
    compiler.fail_with = "Undefined control sequence"
    failed = asyncio.run(session.refresh(TEMPLATE, _resume("Two")))
    assert not failed.ok
    assert "Undefined control sequence" in failed.error
    assert failed.handle is None
    assert session.current is None
    assert ok.handle.released
    assert ok.source.released
    # The filled document stays available for download after a failed compile.
    assert list(tmp_path.iterdir()) == [failed.source.path]
    assert failed.source.path.read_text(encoding="utf-8") == "Two"


def test_out_of_order_responses_keep_latest_request(tmp_path):
    async def scenario():
        compiler = GatedCompiler()
        session = PreviewSession(compiler, handle_dir=tmp_path)
        older = asyncio.create_task(session.refresh(TEMPLATE, _resume("Old")))
        await asyncio.sleep(0)
        newer = asyncio.create_task(session.refresh(TEMPLATE, _resume("New")))
        await asyncio.sleep(0)
        compiler.gates[1].set()
        newer_result = await newer
        compiler.gates[0].set()
        older_result = await older
        return session, older_result, newer_result

    session, older_result, newer_result = asyncio.run(scenario())
    assert older_result is None
    assert newer_result.sequence == 2
    assert session.current is newer_result.handle
    assert session.current.path.read_bytes() == b"New"
    assert sorted(tmp_path.iterdir()) == sorted([newer_result.handle.path, newer_result.source.path])


def test_stale_failure_does_not_clear_latest_preview(tmp_path):
    async def scenario():
        compiler = GatedCompiler()
        session = PreviewSession(compiler, handle_dir=tmp_path)
        older = asyncio.create_task(session.refresh(TEMPLATE, _resume("broken")))
        await asyncio.sleep(0)
        newer = asyncio.create_task(session.refresh(TEMPLATE, _resume("Fine")))
        await asyncio.sleep(0)
        compiler.gates[1].set()
        await newer
        compiler.gates[0].set()
        return session, await older

    session, older_result = asyncio.run(scenario())
    assert older_result is None
    assert session.current.path.read_bytes() == b"Fine"


def test_close_releases_and_blocks_refresh(tmp_path):
    with PreviewSession(EchoCompiler(), handle_dir=tmp_path) as session:
        result = asyncio.run(session.refresh(TEMPLATE, _resume("Ada")))
    assert result.handle.released
    assert result.source.released
    assert session.current is None
    assert session.current_source is None
    assert list(tmp_path.iterdir()) == []
    with pytest.raises(RuntimeError, match="closed"):
        asyncio.run(session.refresh(TEMPLATE, _resume("Ada")))


def test_release_is_idempotent(tmp_path):
    session = PreviewSession(EchoCompiler(), handle_dir=tmp_path)
    handle = asyncio.run(session.refresh(TEMPLATE, _resume("Ada"))).handle
    handle.release()
    handle.release()
    assert handle.released


def test_invalid_latest_request_clears_older_preview(tmp_path):
    async def scenario():
        compiler = GatedCompiler()
        session = PreviewSession(compiler, handle_dir=tmp_path)
        first = asyncio.create_task(session.refresh(TEMPLATE, _resume("First")))
        await asyncio.sleep(0)
        compiler.gates[0].set()
        first_result = await first

        older = asyncio.create_task(session.refresh(TEMPLATE, _resume("Older")))
        await asyncio.sleep(0)
        with pytest.raises(ValidationError):
            await session.refresh(TEMPLATE, {"experience": ["not a record"]})
        compiler.gates[1].set()
        return session, first_result, await older

    session, first_result, older_result = asyncio.run(scenario())
    assert older_result is None
    assert session.latest_sequence == 3
    assert session.current is None
    assert session.current_source is None
    assert first_result.handle.released
    assert list(tmp_path.iterdir()) == []
