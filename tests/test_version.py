from __future__ import annotations

from pathlib import Path
import tempfile
import unittest

from buildplan.errors import NoticeKind, VersionArtifactError
from buildplan.version import (
    HEADER_NAME,
    SOURCE_NAME,
    GitVersionQuery,
    VersionArtifact,
    VersionControlState,
    VersionInfo,
    VersionResolver,
    resolve_version,
)

from fakes import ScriptedCommandRunner


STATIC = (2, 7, 3)


class ResolveVersionTests(unittest.TestCase):
    def test_unavailable_falls_back_to_static_version(self) -> None:
        info, notices = resolve_version(VersionControlState.unavailable(), STATIC)
        self.assertEqual(info.version, "2.7.3")
        self.assertEqual(info.commit_hash, "")
        self.assertEqual(info.filename_suffix, "")
        self.assertFalse(info.is_exact_tag)
        self.assertEqual([notice.kind for notice in notices], [NoticeKind.VERSION_FALLBACK])

    def test_exact_release_tag(self) -> None:
        state = VersionControlState(available=True, commit_hash="abc1234", exact_tag="2.8.0", distance=0)
        info, notices = resolve_version(state, STATIC)
        self.assertEqual((info.major, info.minor, info.patch), (2, 8, 0))
        self.assertTrue(info.is_exact_tag)
        self.assertEqual(info.filename_suffix, "")
        self.assertEqual(info.version_string, "2.8.0")
        self.assertEqual(notices, ())

    def test_exact_prerelease_tag_keeps_label(self) -> None:
        state = VersionControlState(available=True, commit_hash="abc1234", exact_tag="v2.9.0-beta.1", distance=0)
        info, _ = resolve_version(state, STATIC)
        self.assertEqual(info.version, "2.9.0")
        self.assertEqual(info.filename_suffix, "-beta.1")

    def test_commits_after_tag(self) -> None:
        state = VersionControlState(available=True, commit_hash="abc1234", distance=12)
        info, notices = resolve_version(state, STATIC)
        self.assertEqual(info.version_string, "2.7.3-12-gabc1234")
        self.assertEqual(info.package_file_name("Cockatrice"), "Cockatrice-2.7.3-12-gabc1234")
        self.assertFalse(info.is_exact_tag)
        self.assertEqual(notices, ())

    def test_unknown_distance(self) -> None:
        state = VersionControlState(available=True, commit_hash="abc1234")
        info, _ = resolve_version(state, STATIC)
        self.assertEqual(info.filename_suffix, "-gabc1234")

    def test_unparsable_tag_uses_static_version(self) -> None:
        state = VersionControlState(
            available=True,
            commit_hash="abc1234",
            exact_tag="2019-08-31-Release-2.7.2",
            distance=0,
        )
        info, notices = resolve_version(state, STATIC)
        self.assertEqual(info.version, "2.7.3")
        self.assertFalse(info.is_exact_tag)
        self.assertEqual([notice.kind for notice in notices], [NoticeKind.VERSION_FALLBACK])

    def test_resolution_is_pure(self) -> None:
        state = VersionControlState(available=True, commit_hash="abc1234", distance=3)
        self.assertEqual(resolve_version(state, STATIC), resolve_version(state, STATIC))


class GitVersionQueryTests(unittest.TestCase):
    def setUp(self) -> None:
        self.temp_dir = tempfile.TemporaryDirectory()
        self.repo = Path(self.temp_dir.name)

    def tearDown(self) -> None:
        self.temp_dir.cleanup()

    def test_exact_tag(self) -> None:
        runner = ScriptedCommandRunner()
        runner.respond("git rev-parse --short HEAD", "abc1234\n")
        runner.respond("git describe --exact-match --tags HEAD", "2.8.0\n")
        state = GitVersionQuery(runner).query(self.repo)
        self.assertEqual(state, VersionControlState(available=True, commit_hash="abc1234", exact_tag="2.8.0", distance=0))

    def test_distance_from_describe(self) -> None:
        runner = ScriptedCommandRunner()
        runner.respond("git rev-parse --short HEAD", "abc1234\n")
        runner.respond("git describe --exact-match --tags HEAD", returncode=128, stderr="fatal: no tag exactly matches\n")
        runner.respond("git describe --tags --long", "2.7.2-12-gabc1234\n")
        state = GitVersionQuery(runner).query(self.repo)
        self.assertTrue(state.available)
        self.assertIsNone(state.exact_tag)
        self.assertEqual(state.distance, 12)

    def test_distance_from_commit_count_without_tags(self) -> None:
        runner = ScriptedCommandRunner()
        runner.respond("git rev-parse --short HEAD", "abc1234\n")
        runner.respond("git rev-list --count HEAD", "345\n")
        state = GitVersionQuery(runner).query(self.repo)
        self.assertEqual(state.distance, 345)

    def test_not_a_repository(self) -> None:
        runner = ScriptedCommandRunner()
        runner.respond("git rev-parse --short HEAD", returncode=128, stderr="fatal: not a git repository\n")
        self.assertFalse(GitVersionQuery(runner).query(self.repo).available)
        self.assertFalse(GitVersionQuery(runner).query(self.repo / "missing").available)


class CountingQuery:
    def __init__(self, state: VersionControlState) -> None:
        self.state = state
        self.calls = 0

    def query(self, repo_path: Path) -> VersionControlState:
        self.calls += 1
        return self.state


class VersionResolverTests(unittest.TestCase):
    def test_resolves_once(self) -> None:
        query = CountingQuery(VersionControlState(available=True, commit_hash="abc1234", distance=1))
        resolver = VersionResolver(query, STATIC)  # type: ignore[arg-type]
        first = resolver.resolve(Path("."))
        second = resolver.resolve(Path("."))
        self.assertIs(first, second)
        self.assertEqual(query.calls, 1)


class VersionArtifactTests(unittest.TestCase):
    def setUp(self) -> None:
        self.temp_dir = tempfile.TemporaryDirectory()
        self.build_dir = Path(self.temp_dir.name) / "build"

    def tearDown(self) -> None:
        self.temp_dir.cleanup()

    def test_writes_header_and_source_once(self) -> None:
        info = VersionInfo(2, 7, 3, commit_hash="abc1234", is_exact_tag=False, filename_suffix="-12-gabc1234")
        artifact = VersionArtifact(self.build_dir)
        paths = artifact.write(info)

        self.assertEqual([path.name for path in paths], [HEADER_NAME, SOURCE_NAME])
        source = (self.build_dir / SOURCE_NAME).read_text(encoding="utf-8")
        self.assertIn('VERSION_STRING = "2.7.3-12-gabc1234";', source)
        self.assertIn('VERSION_COMMIT = "abc1234";', source)
        self.assertIn("extern const char *VERSION_STRING;", (self.build_dir / HEADER_NAME).read_text(encoding="utf-8"))
        self.assertEqual(artifact.written, paths)

        with self.assertRaises(VersionArtifactError):
            artifact.write(info)


if __name__ == "__main__":
    unittest.main()
