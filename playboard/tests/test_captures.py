import random

import chess

from playboard.captures import CapturedPiece, diff_captures, material_balance
from playboard.position import CanonicalMove, Position


def play(position: Position, *moves: str) -> Position:
    for uci in moves:
        position = position.apply(CanonicalMove(uci[:2], uci[2:4], uci[4:] or None))
        assert isinstance(position, Position), uci
    return position


def test_quiet_move_captures_nothing():
    start = Position.initial()
    assert diff_captures(start, play(start, "e2e4")) == {"white": [], "black": []}


def test_capture_is_credited_to_the_capturing_side():
    before = play(Position.initial(), "e2e4", "d7d5")
    after = play(before, "e4d5")

    captured = diff_captures(before, after)
    assert captured["white"] == [CapturedPiece("p", "black", 1)]
    assert captured["black"] == []


def test_black_capturing_a_knight():
    before = play(Position.initial(), "g1f3", "e7e5", "f3e5", "d7d6")
    after = play(before, "d6e5")

    captured = diff_captures(before, after)
    assert captured["black"] == [CapturedPiece("n", "white", 3)]


def test_en_passant_capture_is_seen():
    before = play(Position.initial(), "e2e4", "a7a6", "e4e5", "d7d5")
    # d6 is empty before the capture
    assert before.piece_at("d6") is None
    after = play(before, "e5d6")

    captured = diff_captures(before, after)
    assert captured["white"] == [CapturedPiece("p", "black", 1)]


def test_promotion_without_capture_is_not_a_capture():
    before = Position.from_fen("8/4P3/8/8/8/8/k7/4K3 w - - 0 1")
    after = play(before, "e7e8q")
    assert diff_captures(before, after) == {"white": [], "black": []}


def test_promotion_with_capture():
    before = Position.from_fen("3r4/4P3/8/8/8/8/k7/4K3 w - - 0 1")
    after = play(before, "e7d8q")
    captured = diff_captures(before, after)
    assert captured["white"] == [CapturedPiece("r", "black", 5)]
    assert captured["black"] == []


def test_random_games_capture_at_most_one_enemy_piece_per_move():
    rng = random.Random(20240501)
    for _ in range(20):
        board = chess.Board()
        for _ in range(80):
            if board.is_game_over():
                break
            move = rng.choice(list(board.legal_moves))
            mover = "white" if board.turn else "black"
            before = Position(board)
            capture = board.is_capture(move)
            board.push(move)
            captured = diff_captures(before, Position(board))

            other = "black" if mover == "white" else "white"
            assert captured[other] == []
            assert len(captured[mover]) == (1 if capture else 0)
            for piece in captured[mover]:
                assert piece.color == other


def test_material_balance():
    assert material_balance({"white": [], "black": []}).side is None

    captured = {
        "white": [CapturedPiece("q", "black", 9)],
        "black": [CapturedPiece("r", "white", 5), CapturedPiece("p", "white", 1)],
    }
    balance = material_balance(captured)
    assert balance.side == "white"
    assert balance.value == 3
