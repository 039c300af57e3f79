"""
Tests for frame encoding and command/event parsing.
"""

import struct

import pytest

from tictactoe.shared.constants import MAX_FRAME_SIZE
from tictactoe.shared.protocols import (
    Draw,
    FrameError,
    Malformed,
    Move,
    StateUpdate,
    Win,
    decode_frame,
    encode_frame,
    encode_message,
    parse_command,
    parse_event,
    split_frames,
)

EMPTY_BOARD = ((0, 0, 0), (0, 0, 0), (0, 0, 0))


class TestFrames:
    def test_header_is_little_endian_body_length(self):
        frame = encode_frame("DRAW")
        assert frame[:4] == struct.pack("<i", 8)
        assert frame[4:] == "DRAW".encode("utf-16-le")

    def test_decode_frame_returns_text(self):
        assert decode_frame(encode_frame("MOVE|1|0|0")) == "MOVE|1|0|0"

    def test_decode_frame_rejects_short_payload(self):
        assert decode_frame(b"\x01\x00") is None

    def test_decode_frame_rejects_length_mismatch(self):
        frame = encode_frame("MOVE|1|0|0")
        assert decode_frame(frame[:-2]) is None
        assert decode_frame(frame + b"\x00\x00") is None

    def test_decode_frame_rejects_negative_length(self):
        assert decode_frame(struct.pack("<i", -1)) is None

    def test_decode_frame_rejects_odd_utf16_body(self):
        payload = struct.pack("<i", 3) + b"abc"
        assert decode_frame(payload) is None

    def test_encode_frame_rejects_oversize_body(self):
        with pytest.raises(FrameError):
            encode_frame("x" * (MAX_FRAME_SIZE // 2 + 1))

    def test_split_frames_keeps_partial_tail(self):
        first = encode_frame("MOVE|1|0|0")
        second = encode_frame("MOVE|2|1|1")
        buf = bytearray(first + second[:5])
        assert split_frames(buf) == [first]
        assert bytes(buf) == second[:5]
        buf.extend(second[5:])
        assert split_frames(buf) == [second]
        assert buf == bytearray()

    def test_split_frames_waits_for_full_header(self):
        buf = bytearray(b"\x08\x00")
        assert split_frames(buf) == []
        assert len(buf) == 2

    def test_split_frames_raises_on_invalid_length(self):
        buf = bytearray(struct.pack("<i", MAX_FRAME_SIZE + 1))
        with pytest.raises(FrameError):
            split_frames(buf)


class TestParseCommand:
    def test_valid_move(self):
        assert parse_command("MOVE|1|0|2") == Move(1, 0, 2)

    def test_out_of_range_coordinates_still_parse(self):
        # range checks belong to the game rules
        assert parse_command("MOVE|1|9|0") == Move(1, 9, 0)

    @pytest.mark.parametrize(
        "text",
        [
            "",
            "MOVE",
            "MOVE|1|0",
            "MOVE|1|0|0|0",
            "MOVE|a|0|0",
            "MOVE|1|0.5|0",
            "MOVE|1||0",
            "MOVE|1|1_0|0",
            "move|1|0|0",
            "JUMP|1|0|0",
        ],
    )
    def test_malformed_commands(self, text):
        result = parse_command(text)
        assert isinstance(result, Malformed)
        assert result.text == text

    def test_signed_and_padded_integers(self):
        assert parse_command("MOVE| 2 |-1|+1") == Move(2, -1, 1)

    def test_oversized_integer_field_is_malformed(self):
        text = "MOVE|1|" + "9" * 5000 + "|0"
        result = parse_command(text)
        assert isinstance(result, Malformed)
        assert result.reason == "non-integer field"

    def test_nine_digit_field_still_parses(self):
        assert parse_command("MOVE|1|999999999|0") == Move(1, 999999999, 0)


class TestMessages:
    def test_initial_state_text(self):
        state = StateUpdate(EMPTY_BOARD, 1, True)
        assert state.to_text() == "0,0,0;0,0,0;0,0,0|1|True"

    def test_terminal_state_text(self):
        state = StateUpdate(((1, 1, 1), (2, 2, 0), (0, 0, 0)), 1, False)
        assert state.to_text() == "1,1,1;2,2,0;0,0,0|1|False"

    def test_terminal_events(self):
        assert Win(2).to_text() == "WIN|2"
        assert Draw().to_text() == "DRAW"
        assert Move(1, 2, 0).to_text() == "MOVE|1|2|0"

    def test_encode_message(self):
        assert decode_frame(encode_message(Win(1))) == "WIN|1"


class TestParseEvent:
    def test_state(self):
        event = parse_event("1,0,0;0,0,0;0,0,0|2|True")
        assert event == StateUpdate(((1, 0, 0), (0, 0, 0), (0, 0, 0)), 2, True)

    def test_win_and_draw(self):
        assert parse_event("WIN|1") == Win(1)
        assert parse_event("DRAW") == Draw()

    @pytest.mark.parametrize(
        "text",
        [
            "WIN",
            "WIN|x",
            "0,0,0;0,0,0;0,0,0|1|true",
            "0,0,0;0,0;0,0,0|1|True",
            "0,0,0;0,0,0;0,0,0|1",
            "0,0,0;0,0,0;0,0,0|" + "1" * 5000 + "|True",
            "garbage",
        ],
    )
    def test_malformed_events(self, text):
        assert isinstance(parse_event(text), Malformed)
