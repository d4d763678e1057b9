import io

import pytest

from espflash.encoder import SlipDecoder, SlipEncoder, slip_encode


def test_empty_frame_is_two_delimiters():
    assert slip_encode(b"") == b"\xc0\xc0"


def test_end_byte_is_escaped():
    assert slip_encode(b"\xc0") == b"\xc0\xdb\xdc\xc0"


def test_esc_byte_is_escaped():
    assert slip_encode(b"\xdb") == b"\xc0\xdb\xdd\xc0"


@pytest.mark.parametrize(
    "payload",
    [b"hello", b"\xc0\xdb\xc0", bytes(range(256)), b"\xdb\xdc\xdd"],
)
def test_round_trip(payload):
    assert SlipDecoder().feed(slip_encode(payload)) == [payload]


def test_encoder_counts_written_bytes():
    buf = io.BytesIO()
    encoder = SlipEncoder(buf)
    consumed = encoder.write(b"a\xc0b")
    total = encoder.finish()
    assert consumed == 3
    assert total == len(buf.getvalue())
    assert buf.getvalue() == slip_encode(b"a\xc0b")


def test_encoder_flush_reaches_writer():
    class Recorder(io.BytesIO):
        flushes = 0

        def flush(self):
            self.flushes += 1
            super().flush()

    buf = Recorder()
    encoder = SlipEncoder(buf)
    encoder.flush()
    assert buf.flushes == 1


def test_decoder_handles_split_input():
    stream = slip_encode(b"first\xdb") + slip_encode(b"second")
    decoder = SlipDecoder()
    frames = []
    for i in range(0, len(stream), 3):
        frames.extend(decoder.feed(stream[i : i + 3]))
    assert frames == [b"first\xdb", b"second"]


def test_decode_from_reader_and_timeout():
    reader = io.BytesIO(slip_encode(b"one") + slip_encode(b"two"))
    decoder = SlipDecoder()
    assert decoder.decode(reader) == b"one"
    assert decoder.decode(reader) == b"two"
    with pytest.raises(TimeoutError):
        decoder.decode(reader)


def test_invalid_escape_raises():
    with pytest.raises(ValueError):
        SlipDecoder().feed(b"\xc0\xdb\x01\xc0")


def test_empty_frames_are_skipped():
    assert SlipDecoder().feed(b"\xc0\xc0\xc0abc\xc0") == [b"abc"]