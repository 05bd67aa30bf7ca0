"""Tests for runonchange.event_filter."""

import re

import pytest

from runonchange.event_filter import EDITOR_TEMP_PATTERN, RejectReason, accepts, check_path
from runonchange.models import Matcher, MatchMode, Tick


def ignore(expr):
    return Matcher(re.compile(expr), MatchMode.IGNORE)


def restrict(expr):
    return Matcher(re.compile(expr), MatchMode.RESTRICT)


class TestEditorTemps:
    @pytest.mark.parametrize("name", [".main.c.swp", ".notes.swx", ".x.swo", "4913"])
    def test_editor_temps_match(self, name):
        assert EDITOR_TEMP_PATTERN.match(name)

    @pytest.mark.parametrize("name", ["main.c", "swap.swp", "49130", ".gitignore"])
    def test_regular_files_do_not_match(self, name):
        assert not EDITOR_TEMP_PATTERN.match(name)

    def test_rejected_by_basename(self, make_directive):
        rejection = check_path(make_directive(), "/src/.main.c.swp")
        assert rejection.reason is RejectReason.EDITOR_TEMP
        assert rejection.tick is None

    def test_directory_part_is_not_considered(self, make_directive):
        assert check_path(make_directive(), "/src/4913/main.c") is None

    def test_disabled_without_feature(self, make_directive):
        directive = make_directive(default_ignore=False)
        assert accepts(directive, "/src/4913")


class TestPatternChain:
    def test_empty_chain_accepts(self, make_directive):
        assert accepts(make_directive(), "/src/anything.o")

    def test_ignore_rejects_on_match(self, make_directive):
        directive = make_directive(patterns=(ignore(r"\.log$"),))
        rejection = check_path(directive, "/tmp/w/app.log")
        assert rejection.reason is RejectReason.IGNORED
        assert rejection.index == 0
        assert rejection.tick is Tick.IGNORED
        assert accepts(directive, "/tmp/w/app.c")

    def test_restrict_rejects_on_miss(self, make_directive):
        directive = make_directive(patterns=(restrict(r"\.c$"),))
        rejection = check_path(directive, "/tmp/w/app.h")
        assert rejection.reason is RejectReason.UNMATCHED
        assert rejection.tick is Tick.UNMATCHED
        assert accepts(directive, "/tmp/w/app.c")

    def test_patterns_see_full_path(self, make_directive):
        directive = make_directive(patterns=(restrict(r"^/src/"), ignore(r"/vendor/")))
        assert accepts(directive, "/src/main.go")
        assert not accepts(directive, "/src/vendor/lib.go")
        assert not accepts(directive, "/other/main.go")

    def test_first_rejection_wins(self, make_directive):
        directive = make_directive(patterns=(restrict(r"\.c$"), ignore(r"test")))
        rejection = check_path(directive, "/src/test.h")
        assert rejection.reason is RejectReason.UNMATCHED
        assert rejection.index == 0
        assert str(rejection) == "MISS[0]"

        rejection = check_path(directive, "/src/test.c")
        assert rejection.reason is RejectReason.IGNORED
        assert str(rejection) == "IGNR[1]"

    @pytest.mark.parametrize(
        "path",
        ["/a/x.c", "/a/vendor/x.c", "/a/x.h", "/a/x_test.c", "/b/x.c"],
    )
    def test_accept_iff_no_ignore_matches_and_every_restrict_matches(self, make_directive, path):
        chain = (restrict(r"\.c$"), ignore(r"vendor"), restrict(r"^/a/"), ignore(r"_test"))
        directive = make_directive(patterns=chain)
        expected = all(m.matches(path) != (m.mode is MatchMode.IGNORE) for m in chain)
        assert accepts(directive, path) is expected

    def test_decision_is_stable(self, make_directive):
        directive = make_directive(patterns=(ignore(r"\.o$"),))
        results = {check_path(directive, "/src/a.o") for _ in range(5)}
        assert len(results) == 1
