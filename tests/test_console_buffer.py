from runtap.events import (
    BuildLogAppended,
    ErrorReported,
    InputEchoed,
    LocalNotice,
    OutputAppended,
    PresentationSink,
    RunEnded,
    RunStarted,
    Severity,
    StatusChanged,
)
from runtap.services import ConsoleBuffer


def test_renders_like_the_web_console():
    buffer = ConsoleBuffer()
    buffer(BuildLogAppended(" Compiling..."))
    buffer(OutputAppended("\x1b[32mok\x1b[0m"))
    buffer(InputEchoed("5"))
    buffer(ErrorReported("Compilation timed out."))
    buffer(LocalNotice("Cannot send input, no active run"))

    assert buffer.read_build_log() == (
        " Compiling...\n\n[ERROR] Compilation timed out.\n[System] Cannot send input, no active run"
    )
    assert buffer.read_output() == "\x1b[32mok\x1b[0m\n[Input Sent: 5]\n"
    assert [n["message"] for n in buffer.notices()] == ["Cannot send input, no active run"]


def test_run_started_clears_both_areas():
    buffer = ConsoleBuffer()
    buffer(BuildLogAppended("old"))
    buffer(OutputAppended("old"))
    buffer(RunEnded("SUCCESS"))
    buffer(RunStarted("int main(){}"))
    assert buffer.read_build_log() == ""
    assert buffer.read_output() == ""
    assert buffer.last_end_reason is None


def test_status_tracking():
    buffer = ConsoleBuffer()
    assert (buffer.severity, buffer.label) == (Severity.ERR, "Disconnected")
    buffer(StatusChanged(Severity.WARN, "Running"))
    assert (buffer.severity, buffer.label) == (Severity.WARN, "Running")


def test_read_and_clear():
    buffer = ConsoleBuffer()
    buffer(OutputAppended("a"))
    assert buffer.read_output(clear=True) == "a"
    assert buffer.read_output() == ""


def test_bounded():
    buffer = ConsoleBuffer(maxlen=3)
    for chunk in "abcde":
        buffer(OutputAppended(chunk))
    assert buffer.read_output() == "cde"


def test_base_sink_ignores_unhandled_events():
    class OnlyOutput(PresentationSink):
        def __init__(self):
            self.chunks = []

        def on_output(self, chunk):
            self.chunks.append(chunk)

    sink = OnlyOutput()
    sink(StatusChanged(Severity.OK, "Connected (Idle)"))
    sink(OutputAppended("x"))
    sink(RunEnded())
    assert sink.chunks == ["x"]
