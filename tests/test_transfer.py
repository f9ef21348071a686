"""Tests for the resumable copy driver.

Copies run between local directories so every byte really moves; the
object-store leg is covered by the client tests in test_storage_s3.py.
"""

import pytest

from stowage.errors import InvalidArgument, NoSuchKey, StowageError
from stowage.transfer import copy_object, expand_sources, run_session, start_copy, target_for


@pytest.fixture
def src(tmp_path):
    root = tmp_path / "src"
    (root / "sub").mkdir(parents=True)
    (root / "a.txt").write_bytes(b"alpha")
    (root / "b.txt").write_bytes(b"bravo")
    (root / "sub" / "c.txt").write_bytes(b"charlie")
    return root


class TestTargetFor:
    """Tests for target_for()."""

    def test_object_target(self):
        assert target_for("/s/a.txt", ["/s/a.txt"], "/d/copy.txt") == "/d/copy.txt"

    def test_single_source_into_directory(self):
        assert target_for("/s/a.txt", ["/s/a.txt"], "/d/") == "/d/a.txt"

    def test_recursive_relative_path(self):
        assert target_for("/s/sub/c.txt", ["/s"], "/d/") == "/d/sub/c.txt"

    def test_longest_source_wins(self):
        sources = ["/s", "/s/sub"]
        assert target_for("/s/sub/c.txt", sources, "/d/") == "/d/c.txt"

    def test_object_store_urls(self):
        source = "https://s3.example.com/b/dir/x/y.txt"
        target = target_for(source, ["https://s3.example.com/b/dir/"], "https://s3.example.com/c/")
        assert target == "https://s3.example.com/c/x/y.txt"

    def test_unmatched_source_uses_basename(self):
        assert target_for("/elsewhere/z.txt", ["/s"], "/d/") == "/d/z.txt"


class TestExpandSources:
    """Tests for expand_sources()."""

    async def test_recursive(self, resolver, src):
        roots, urls = await expand_sources(resolver, [str(src)], recursive=True)
        assert roots == [str(src)]
        assert urls == [str(src / "a.txt"), str(src / "b.txt"), str(src / "sub" / "c.txt")]

    async def test_single_file(self, resolver, src):
        _, urls = await expand_sources(resolver, [str(src / "a.txt")], recursive=False)
        assert urls == [str(src / "a.txt")]

    async def test_recursive_single_file(self, resolver, src):
        _, urls = await expand_sources(resolver, [str(src / "a.txt")], recursive=True)
        assert urls == [str(src / "a.txt")]

    async def test_duplicates_removed(self, resolver, src):
        arg = str(src / "a.txt")
        _, urls = await expand_sources(resolver, [arg, arg], recursive=False)
        assert urls == [arg]

    async def test_missing_source(self, resolver, tmp_path):
        with pytest.raises(NoSuchKey):
            await expand_sources(resolver, [str(tmp_path / "absent")], recursive=False)

    async def test_empty_directory(self, resolver, tmp_path):
        (tmp_path / "empty").mkdir()
        with pytest.raises(InvalidArgument):
            await expand_sources(resolver, [str(tmp_path / "empty")], recursive=True)


class TestCopy:
    """Tests for start_copy() and run_session()."""

    async def test_recursive_copy(self, resolver, store, src, tmp_path):
        dst = tmp_path / "dst"
        session = await start_copy(store, resolver, [str(src)], str(dst), recursive=True)
        assert session.target == str(dst) + "/"

        results = await run_session(session, resolver, jobs=2)

        assert all(r.ok for r in results)
        assert (dst / "a.txt").read_bytes() == b"alpha"
        assert (dst / "sub" / "c.txt").read_bytes() == b"charlie"
        assert store.sessions() == []

    async def test_copy_to_new_file(self, resolver, store, src, tmp_path):
        target = tmp_path / "out" / "renamed.txt"
        session = await start_copy(store, resolver, [str(src / "a.txt")], str(target))
        results = await run_session(session, resolver)
        assert [r.size for r in results] == [5]
        assert target.read_bytes() == b"alpha"

    async def test_copy_into_existing_directory(self, resolver, store, src, tmp_path):
        (tmp_path / "out").mkdir()
        session = await start_copy(store, resolver, [str(src / "b.txt")], str(tmp_path / "out"))
        await run_session(session, resolver)
        assert (tmp_path / "out" / "b.txt").read_bytes() == b"bravo"

    async def test_several_sources_go_into_target(self, resolver, store, src, tmp_path):
        args = [str(src / "a.txt"), str(src / "b.txt")]
        session = await start_copy(store, resolver, args, str(tmp_path / "many"))
        await run_session(session, resolver)
        assert sorted(p.name for p in (tmp_path / "many").iterdir()) == ["a.txt", "b.txt"]

    async def test_failure_keeps_session_and_resume_finishes(self, resolver, store, src, tmp_path):
        dst = tmp_path / "dst"
        session = await start_copy(store, resolver, [str(src)], str(dst), recursive=True)
        (src / "b.txt").unlink()

        results = await run_session(session, resolver, jobs=1)

        failed = [r for r in results if not r.ok]
        assert [r.source for r in failed] == [str(src / "b.txt")]
        assert isinstance(failed[0].error, NoSuchKey)
        assert (dst / "a.txt").exists()
        assert (dst / "sub" / "c.txt").exists()

        reloaded = store.load(session.session_id)
        assert reloaded.pending() == [str(src / "b.txt")]

        (src / "b.txt").write_bytes(b"bravo again")
        copied = []
        results = await run_session(reloaded, resolver, progress=lambda r: copied.append(r.source))
        assert copied == [str(src / "b.txt")]
        assert (dst / "b.txt").read_bytes() == b"bravo again"
        assert store.sessions() == []

    async def test_target_below_regular_file_fails_per_url(self, resolver, store, src, tmp_path):
        blocker = tmp_path / "blocker"
        blocker.write_bytes(b"x")
        args = [str(src / "a.txt"), str(src / "b.txt")]
        session = await start_copy(store, resolver, args, str(blocker) + "/")

        results = await run_session(session, resolver, jobs=1)

        assert [r.source for r in results] == args
        assert all(isinstance(r.error, StowageError) for r in results)
        assert blocker.read_bytes() == b"x"
        assert store.load(session.session_id).pending() == args

    async def test_sequential_order(self, resolver, store, src, tmp_path):
        session = await start_copy(store, resolver, [str(src)], str(tmp_path / "dst"), recursive=True)
        order = []
        await run_session(session, resolver, jobs=1, progress=lambda r: order.append(r.source))
        assert order == session.urls

    async def test_invalid_jobs(self, resolver, store, src, tmp_path):
        session = await start_copy(store, resolver, [str(src / "a.txt")], str(tmp_path / "x"))
        with pytest.raises(InvalidArgument):
            await run_session(session, resolver, jobs=0)

    async def test_copy_object(self, resolver, src, tmp_path):
        size = await copy_object(resolver, str(src / "a.txt"), str(tmp_path / "one.txt"))
        assert size == 5
        assert (tmp_path / "one.txt").read_bytes() == b"alpha"
