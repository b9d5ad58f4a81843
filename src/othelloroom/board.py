"""Core Othello rules over a flat 64-cell board."""

from __future__ import annotations

from typing import List, Tuple

Disc = int  # 0 empty, 1 black, 2 white
Player = int  # 1 black, 2 white
Board = List[Disc]
Move = Tuple[int, int]

EMPTY, BLACK, WHITE = 0, 1, 2
DRAW = 0

SIZE = 8
CELLS = SIZE * SIZE

DIRECTIONS: Tuple[Tuple[int, int], ...] = (
    (-1, -1),
    (0, -1),
    (1, -1),
    (-1, 0),
    (1, 0),
    (-1, 1),
    (0, 1),
    (1, 1),
)


def index(x: int, y: int) -> int:
    return y * SIZE + x


def in_bounds(x: int, y: int) -> bool:
    return 0 <= x < SIZE and 0 <= y < SIZE


def opponent(player: Player) -> Player:
    return WHITE if player == BLACK else BLACK


def initial_board() -> Board:
    """Standard start: (3,3) and (4,4) white, (3,4) and (4,3) black."""
    board = [EMPTY] * CELLS
    board[index(3, 3)] = WHITE
    board[index(4, 4)] = WHITE
    board[index(3, 4)] = BLACK
    board[index(4, 3)] = BLACK
    return board


def count_discs(board: Board) -> Tuple[int, int]:
    """Return ``(black, white)`` disc counts."""
    return board.count(BLACK), board.count(WHITE)


# ---------- Legality ----------


def flips(board: Board, x: int, y: int, player: Player) -> List[int]:
    """Indices captured by ``player`` placing at ``(x, y)``; empty if illegal."""
    if not in_bounds(x, y) or board[index(x, y)] != EMPTY:
        return []

    opp = opponent(player)
    captured: List[int] = []
    for dx, dy in DIRECTIONS:
        cx, cy = x + dx, y + dy
        line: List[int] = []
        while in_bounds(cx, cy) and board[index(cx, cy)] == opp:
            line.append(index(cx, cy))
            cx += dx
            cy += dy
        # The run only counts when a same-colour disc closes it.
        if line and in_bounds(cx, cy) and board[index(cx, cy)] == player:
            captured.extend(line)
    return captured


def is_legal_move(board: Board, x: int, y: int, player: Player) -> bool:
    return bool(flips(board, x, y, player))


def legal_moves(board: Board, player: Player) -> List[Move]:
    """All legal ``(x, y)`` moves for ``player`` in row-major order."""
    return [
        (x, y)
        for y in range(SIZE)
        for x in range(SIZE)
        if is_legal_move(board, x, y, player)
    ]


def has_any_legal_move(board: Board, player: Player) -> bool:
    return any(
        is_legal_move(board, x, y, player) for y in range(SIZE) for x in range(SIZE)
    )


# ---------- Mutation & outcome ----------


def apply_move(board: Board, x: int, y: int, player: Player) -> Board:
    """Place a disc and flip captures.

    Illegal moves return ``board`` itself, untouched. Callers that must reject
    illegal input validate against :func:`legal_moves` first.
    """
    captured = flips(board, x, y, player)
    if not captured:
        return board
    nxt = board.copy()
    nxt[index(x, y)] = player
    for i in captured:
        nxt[i] = player
    return nxt


def is_full(board: Board) -> bool:
    return EMPTY not in board


def winner(board: Board) -> Player:
    """``BLACK`` or ``WHITE`` by strict disc majority, ``DRAW`` (0) on ties."""
    black, white = count_discs(board)
    if black > white:
        return BLACK
    if white > black:
        return WHITE
    return DRAW


def is_terminal(board: Board) -> bool:
    return is_full(board) or not (
        has_any_legal_move(board, BLACK) or has_any_legal_move(board, WHITE)
    )


def parse_board(rows: str) -> Board:
    """Build a board from 8 lines of ``.``/``B``/``W`` characters.

    Whitespace between lines is ignored; handy for fixtures and debugging.
    """
    mapping = {".": EMPTY, "B": BLACK, "W": WHITE}
    cells = [mapping[c] for c in rows if c in mapping]
    if len(cells) != CELLS:
        raise ValueError(f"Expected {CELLS} cells, got {len(cells)}")
    return cells

