import chess
import pytest

from playboard.errors import MoveFormatError
from playboard.normalizer import (
    CoordinateString,
    SquareIndexPair,
    SquareNamePair,
    Unrecognized,
    classify,
    index_to_square,
    normalize,
)
from playboard.position import CanonicalMove, Position


def test_classify_shapes():
    assert classify("e2e4") == CoordinateString("e2e4")
    assert classify({"from": "e2", "to": "e4"}) == SquareNamePair("e2", "e4")
    assert classify({"from_square": 12, "to_square": 28}) == SquareIndexPair(12, 28)
    assert isinstance(classify({"foo": 1}), Unrecognized)
    assert isinstance(classify(42), Unrecognized)
    # from_square 0 (a1) is a real square, not a missing field
    assert classify({"from_square": 0, "to_square": 8}) == SquareIndexPair(0, 8)


def test_index_to_square():
    assert index_to_square(0) == "a1"
    assert index_to_square(7) == "h1"
    assert index_to_square(12) == "e2"
    assert index_to_square(63) == "h8"
    for bad in (-1, 64, "12", True):
        with pytest.raises(MoveFormatError):
            index_to_square(bad)


def test_coordinate_string():
    assert normalize("e2e4", Position.initial()) == CanonicalMove("e2", "e4")


def test_coordinate_string_with_promotion():
    position = Position.from_fen("8/4P3/8/8/8/8/k7/4K3 w - - 0 1")
    assert normalize("e7e8q", position) == CanonicalMove("e7", "e8", "q")
    assert normalize("e7e8n", position) == CanonicalMove("e7", "e8", "n")


def test_square_name_object():
    move = normalize({"from": "g8", "to": "f6"}, Position.initial().apply(CanonicalMove("e2", "e4")))
    assert move == CanonicalMove("g8", "f6")


def test_square_index_object():
    start = Position.initial()

    move = normalize({"from_square": 12, "to_square": 28}, start)
    assert move == CanonicalMove("e2", "e4")
    assert start.apply(move).side_to_move() == "black"


def test_square_index_object_out_of_range():
    with pytest.raises(MoveFormatError, match="out of range"):
        normalize({"from_square": 12, "to_square": 70}, Position.initial())


def test_unrecognized_payload_fails_and_leaves_position_alone():
    start = Position.initial()
    fen = start.fen()

    with pytest.raises(MoveFormatError, match="Unrecognized move format"):
        normalize({"foo": 1}, start)
    assert start.fen() == fen


@pytest.mark.parametrize("payload", [None, 3.5, [], ""])
def test_other_unrecognized_payloads(payload):
    with pytest.raises(MoveFormatError):
        normalize(payload, Position.initial())


def test_san_fallback():
    start = Position.initial()
    assert normalize("Nf3", start) == CanonicalMove("g1", "f3")
    # Four characters but not coordinates
    after_e4_d5 = Position.initial().apply(CanonicalMove("e2", "e4")).apply(CanonicalMove("d7", "d5"))
    assert normalize("exd5", after_e4_d5) == CanonicalMove("e4", "d5")


def test_illegal_coordinate_move_fails():
    with pytest.raises(MoveFormatError, match="e2e5"):
        normalize("e2e5", Position.initial())


def test_every_legal_move_normalizes_from_each_encoding():
    fens = [
        chess.STARTING_FEN,
        "r3k2r/pPppqpb1/bn2pnp1/3PN3/1p2P3/2N2Q1p/PPPBBPPP/R3K2R w KQkq - 0 1",
        "rnbqkbnr/ppp1p1pp/8/3pPp2/8/8/PPPP1PPP/RNBQKBNR w KQkq f6 0 3",
    ]
    for fen in fens:
        position = Position.from_fen(fen)
        board = chess.Board(fen)
        for legal in board.legal_moves:
            expected = CanonicalMove.from_chess_move(legal)
            promotion = expected.promotion
            encodings = [
                legal.uci(),
                {"from": expected.from_square, "to": expected.to_square, "promotion": promotion},
                {"from_square": legal.from_square, "to_square": legal.to_square, "promotion": promotion},
            ]
            for encoding in encodings:
                assert normalize(encoding, position) == expected, (fen, encoding)
