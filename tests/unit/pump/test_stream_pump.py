"""
Tests for the main relay loop.

Covers routing by traffic class, malformed-line skipping, write and read
failure handling, and the end-to-end line shape.
"""

import io
import re
from pathlib import Path
from typing import Dict, Iterator
from unittest.mock import Mock

from logveil.core.classifier import TrafficClass
from logveil.core.exceptions import OutputWriteError
from logveil.core.metrics import MetricsCollector
from logveil.core.output import OutputRouter, Sink
from logveil.core.pump import PumpStats, StreamPump, open_input

EXTERNAL_LINE = "1.2.3.4|MyAgent/1|2024-01-01T00:00:00Z|GET /x|200|512|https://ref.example/path"
INTERNAL_LINE = "127.0.0.1|curl/8.0|2024-01-01T00:00:01Z|GET /healthz|200|2|-"
TRACKED_RE = re.compile(
    r'^[0-9a-f]{16} - - \[2024-01-01T00:00:00Z\] GET /x 200 512 "https://ref\.example" "MyAgent/1"$'
)


def _read(path: Path):
    return path.read_text(encoding="utf-8").splitlines() if path.exists() else []


class TestStreamPump:
    """Test per-line processing."""

    def test_end_to_end_external_line(
        self, router: OutputRouter, salt_provider, output_paths: Dict[str, Path]
    ) -> None:
        stats = StreamPump(io.StringIO(EXTERNAL_LINE + "\n"), router, salt_provider).run()

        tracked = _read(output_paths["tracked"])
        assert len(tracked) == 1
        assert TRACKED_RE.match(tracked[0])
        assert _read(output_paths["untracked"]) == []
        assert stats.external == 1 and stats.written == 1

    def test_internal_line_copied_verbatim(
        self, router: OutputRouter, salt_provider, output_paths: Dict[str, Path]
    ) -> None:
        ipv6_line = "::1|healthcheck|ts|GET /|200|0|https://x.example/secret"
        StreamPump(io.StringIO(f"{INTERNAL_LINE}\n{ipv6_line}\n"), router, salt_provider).run()

        assert _read(output_paths["untracked"]) == [INTERNAL_LINE, ipv6_line]
        assert _read(output_paths["tracked"]) == []

    def test_malformed_lines_produce_no_output(
        self, router: OutputRouter, salt_provider, output_paths: Dict[str, Path], metrics: MetricsCollector
    ) -> None:
        source = io.StringIO("garbage\n1.2.3.4|ua|ts\n\n")
        stats = StreamPump(source, router, salt_provider, metrics=metrics).run()

        assert stats == PumpStats(lines_read=3, skipped=3)
        assert _read(output_paths["tracked"]) == []
        assert _read(output_paths["untracked"]) == []
        assert metrics.registry.get_sample_value("logveil_lines_total", {"outcome": "skipped"}) == 3.0

    def test_same_client_same_day_same_token(
        self, router: OutputRouter, salt_provider, output_paths: Dict[str, Path]
    ) -> None:
        other_client = EXTERNAL_LINE.replace("1.2.3.4", "5.6.7.8")
        source = io.StringIO("\n".join([EXTERNAL_LINE, EXTERNAL_LINE, other_client]) + "\n")
        StreamPump(source, router, salt_provider).run()

        tokens = [line.split(" ", 1)[0] for line in _read(output_paths["tracked"])]
        assert tokens[0] == tokens[1]
        assert tokens[0] != tokens[2]

    def test_crlf_terminator_stripped(
        self, router: OutputRouter, salt_provider, output_paths: Dict[str, Path]
    ) -> None:
        pump = StreamPump([], router, salt_provider)
        assert pump.process_line(INTERNAL_LINE + "\r\n") is TrafficClass.INTERNAL
        assert output_paths["untracked"].read_text() == INTERNAL_LINE + "\n"

    def test_client_address_never_reaches_tracked_sink(
        self, router: OutputRouter, salt_provider, output_paths: Dict[str, Path]
    ) -> None:
        StreamPump(io.StringIO(EXTERNAL_LINE + "\n"), router, salt_provider).run()
        assert "1.2.3.4" not in output_paths["tracked"].read_text()
        assert "/path" not in output_paths["tracked"].read_text()

    def test_write_failure_is_counted_and_pump_continues(
        self, salt_provider, metrics: MetricsCollector
    ) -> None:
        router = Mock(spec=OutputRouter)
        router.write.side_effect = [OutputWriteError("closed", details={"sink": "tracked"}), None]
        source = io.StringIO(f"{EXTERNAL_LINE}\n{INTERNAL_LINE}\n")

        stats = StreamPump(source, router, salt_provider, metrics=metrics).run()

        assert stats.write_errors == 1
        assert stats.written == 1
        assert router.write.call_args_list[1].args == (Sink.UNTRACKED, INTERNAL_LINE)
        assert metrics.registry.get_sample_value("logveil_write_errors_total", {"sink": "tracked"}) == 1.0

    def test_read_error_ends_loop(self, router: OutputRouter, salt_provider, metrics: MetricsCollector) -> None:
        def failing_source() -> Iterator[str]:
            yield INTERNAL_LINE + "\n"
            raise OSError(5, "Input/output error")

        stats = StreamPump(failing_source(), router, salt_provider, metrics=metrics).run()

        assert stats.lines_read == 1
        assert stats.internal == 1
        assert metrics.registry.get_sample_value("logveil_read_errors_total") == 1.0

    def test_salt_read_per_line(self, router: OutputRouter, output_paths: Dict[str, Path]) -> None:
        """A date change mid-stream changes tokens from the next line on."""
        from datetime import date
        from logveil.core.salt import SaltProvider

        days = iter([date(2024, 1, 1), date(2024, 1, 2)])
        provider = SaltProvider("s", clock=lambda: next(days))
        StreamPump(io.StringIO(f"{EXTERNAL_LINE}\n{EXTERNAL_LINE}\n"), router, provider).run()

        first, second = (line.split(" ", 1)[0] for line in _read(output_paths["tracked"]))
        assert first != second

    def test_uptime_refreshed_while_running(
        self, router: OutputRouter, salt_provider, metrics: MetricsCollector
    ) -> None:
        metrics._start_time -= 100
        StreamPump(io.StringIO(INTERNAL_LINE + "\n"), router, salt_provider, metrics=metrics).run()
        assert metrics.registry.get_sample_value("logveil_uptime_seconds") >= 100


class TestRawBytes:
    """Test that non-UTF-8 input bytes pass through unchanged."""

    def _run_file(self, tmp_path: Path, data: bytes, router: OutputRouter, salt_provider) -> PumpStats:
        input_path = tmp_path / "access.in"
        input_path.write_bytes(data)
        with open_input(input_path) as source:
            return StreamPump(source, router, salt_provider).run()

    def test_internal_line_bytes_identical(
        self, tmp_path: Path, router: OutputRouter, salt_provider, output_paths: Dict[str, Path]
    ) -> None:
        data = b"127.0.0.1|ag\xff\xfe|ts|GET /caf\xc3\xa9|200|2|-\n::1|\xc3(|ts|GET /|200|0|-\n"
        stats = self._run_file(tmp_path, data, router, salt_provider)

        assert stats.internal == 2
        assert output_paths["untracked"].read_bytes() == data

    def test_external_line_keeps_agent_bytes(
        self, tmp_path: Path, router: OutputRouter, salt_provider, output_paths: Dict[str, Path]
    ) -> None:
        data = b"1.2.3.4|ag\xff\xfe|ts|GET /x|200|512|-\n"
        stats = self._run_file(tmp_path, data, router, salt_provider)

        tracked = output_paths["tracked"].read_bytes()
        assert stats.external == 1 and stats.write_errors == 0
        assert tracked.endswith(b' "" "ag\xff\xfe"\n')
        assert re.match(rb"^[0-9a-f]{16} - - \[ts\] GET /x 200 512 ", tracked)

    def test_undecodable_agents_get_distinct_tokens(
        self, tmp_path: Path, router: OutputRouter, salt_provider, output_paths: Dict[str, Path]
    ) -> None:
        data = b"1.2.3.4|ag\xff|ts|GET /x|200|1|-\n1.2.3.4|ag\xfe|ts|GET /x|200|1|-\n"
        self._run_file(tmp_path, data, router, salt_provider)

        first, second = (line.split(b" ", 1)[0] for line in output_paths["tracked"].read_bytes().splitlines())
        assert first != second

    def test_bare_carriage_return_does_not_split_line(
        self, tmp_path: Path, router: OutputRouter, salt_provider, output_paths: Dict[str, Path]
    ) -> None:
        data = b"127.0.0.1|a\rb|ts|GET /|200|0|-\n"
        stats = self._run_file(tmp_path, data, router, salt_provider)

        assert stats.lines_read == 1 and stats.skipped == 0
        assert output_paths["untracked"].read_bytes() == data
