import pytest

from factorio_supervisor.server.lines import LineSplitter


def create_splitter(lines):
    return LineSplitter(lambda line: lines.append(line.decode("utf-8")))


class TestLineSplitter:

    def test_splits_three_lines(self):
        lines = []
        splitter = create_splitter(lines)
        splitter.feed(b"line 1\nline 2\nline 3\n")
        splitter.flush()
        assert lines == ["line 1", "line 2", "line 3"]

    def test_splits_windows_line_endings(self):
        lines = []
        splitter = create_splitter(lines)
        splitter.feed(b"line 1\r\nline 2\r\nline 3\r\n")
        assert lines == ["line 1", "line 2", "line 3"]

    def test_gives_last_unterminated_line_on_flush(self):
        lines = []
        splitter = create_splitter(lines)
        splitter.feed(b"line a\nline b")
        assert lines == ["line a"]
        splitter.flush()
        assert lines == ["line a", "line b"]

    def test_second_flush_emits_nothing(self):
        lines = []
        splitter = create_splitter(lines)
        splitter.feed(b"tail")
        splitter.flush()
        splitter.flush()
        assert lines == ["tail"]

    def test_flush_on_empty_buffer_is_noop(self):
        lines = []
        splitter = create_splitter(lines)
        splitter.flush()
        assert lines == []

    def test_handles_partial_lines(self):
        lines = []
        splitter = create_splitter(lines)
        splitter.feed(b"part 1")
        splitter.feed(b" part 2 ")
        splitter.feed(b"part 3\n")
        splitter.flush()
        assert lines == ["part 1 part 2 part 3"]

    def test_keeps_empty_lines(self):
        lines = []
        splitter = create_splitter(lines)
        splitter.feed(b"a\n\n\r\nb\n")
        assert lines == ["a", "", "", "b"]

    def test_only_strips_one_carriage_return(self):
        lines = []
        splitter = create_splitter(lines)
        splitter.feed(b"text\r\r\n")
        assert lines == ["text\r"]

    def test_carriage_return_split_from_line_feed(self):
        lines = []
        splitter = create_splitter(lines)
        splitter.feed(b"line 1\r")
        splitter.feed(b"\nline 2\r\n")
        assert lines == ["line 1", "line 2"]

    @pytest.mark.parametrize("size", [1, 2, 3, 7, 64])
    def test_chunk_size_does_not_change_result(self, size):
        text = b"   0.001 Info a.cpp:1: first\r\n\n2020-01-01 00:00:00 [JOIN] x joined\n\f$ipc:c?j[1]\nlast\n"
        whole = []
        create_splitter(whole).feed(text)

        chunked = []
        splitter = create_splitter(chunked)
        for i in range(0, len(text), size):
            splitter.feed(text[i:i + size])
        splitter.flush()
        assert chunked == whole

    def test_failing_callback_does_not_lose_or_repeat_lines(self):
        lines = []

        def callback(line):
            if line == b"bad":
                raise ValueError("bad line")
            lines.append(line)

        splitter = LineSplitter(callback)
        with pytest.raises(ValueError):
            splitter.feed(b"good\nbad\nafter\n")
        assert lines == [b"good"]
        assert splitter.pending == b"after\n"

        splitter.feed(b"")
        assert lines == [b"good", b"after"]
