"""Tests for runonchange.notifier."""

from io import StringIO

from rich.console import Console

from runonchange.errors import ChildExitError
from runonchange.models import EventOp, FileEvent, Tick
from runonchange.notifier import ConsoleNotifier, NoOpNotifier


def make_notifier(quiet=False):
    out = StringIO()
    err = StringIO()
    notifier = ConsoleNotifier(
        quiet=quiet,
        out=Console(file=out, width=200, highlight=False),
        err=Console(file=err, width=200, highlight=False),
    )
    return notifier, out, err


class TestConsoleNotifier:
    def test_framing_lines_go_to_stdout(self):
        notifier, out, err = make_notifier()

        notifier.watching(["/w", "/x"], clobber=False)
        notifier.handling(FileEvent(EventOp.CREATE, "/w/a"))
        notifier.running("make [all]")
        notifier.done(1.5, None)

        text = out.getvalue()
        assert "Watching `/w, /x`" in text
        assert "handling CREATE on /w/a ..." in text
        assert "running: `make [all]`" in text
        assert "done in 1.500s" in text
        assert err.getvalue() == ""

    def test_startup_and_clobber_mode(self):
        notifier, out, _ = make_notifier()
        notifier.watching(["/w"], clobber=True)
        notifier.handling(None)

        text = out.getvalue()
        assert "(in clobber mode)" in text
        assert "handling startup ..." in text

    def test_done_with_error(self):
        notifier, out, _ = make_notifier()
        notifier.done(0.25, ChildExitError(2))
        assert "done in 0.250s: exit status 2" in out.getvalue()

    def test_ticks_on_stderr_without_newlines(self):
        notifier, out, err = make_notifier()
        notifier.tick(Tick.IGNORED)
        notifier.tick(Tick.DEBOUNCED)
        assert err.getvalue() == "i-"
        assert out.getvalue() == ""

    def test_quiet_suppresses_ticks_only(self):
        notifier, _, err = make_notifier(quiet=True)
        notifier.tick(Tick.STILL_RUNNING)
        notifier.notice("Done")
        assert err.getvalue() == "Done\n"


def test_noop_notifier_is_silent(capsys):
    notifier = NoOpNotifier()
    notifier.watching(["/w"], clobber=True)
    notifier.tick(Tick.RUN_FAILED)
    notifier.error("boom")
    captured = capsys.readouterr()
    assert captured.out == ""
    assert captured.err == ""
