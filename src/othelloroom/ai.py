"""Depth-limited minimax with alpha-beta pruning for Othello."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, List, Optional

from . import board as rules
from .board import Board, Move, Player
from .randomness import RandomSource

CORNERS: FrozenSet[int] = frozenset({0, 7, 56, 63})
X_SQUARES: FrozenSet[int] = frozenset({9, 14, 49, 54})
C_SQUARES: FrozenSet[int] = frozenset({1, 6, 8, 15, 48, 55, 57, 62})

# Evaluation weights. Corners dominate; mobility and material swap
# importance once the board passes ENDGAME_DISCS.
ENDGAME_DISCS = 44
W_CORNER = 60
W_DANGER = 12
W_MOBILITY = (8, 3)
W_DISCS = (1, 3)

LEVELS: Dict[str, int] = {"random": 0, "easy": 1, "normal": 2, "hard": 3}
SEARCH_DEPTH = (0, 1, 3, 5)


def level_from_name(name: Optional[str]) -> int:
    return LEVELS.get(name or "", LEVELS["normal"])


# ---- heuristics & eval ----


def evaluate(board: Board, me: Player) -> float:
    opp = rules.opponent(me)
    black, white = rules.count_discs(board)
    late = 1 if black + white >= ENDGAME_DISCS else 0

    disc_diff = black - white if me == rules.BLACK else white - black
    mobility = len(rules.legal_moves(board, me)) - len(rules.legal_moves(board, opp))

    corners = 0
    for i in CORNERS:
        if board[i] == me:
            corners += 1
        elif board[i] == opp:
            corners -= 1

    # Squares next to an open corner hand it to the opponent.
    danger = 0
    for i in X_SQUARES | C_SQUARES:
        if board[i] == me:
            danger -= 1
        elif board[i] == opp:
            danger += 1

    return (
        W_CORNER * corners
        + W_MOBILITY[late] * mobility
        + W_DISCS[late] * disc_diff
        + W_DANGER * danger
    )


def _order(moves: List[Move]) -> List[Move]:
    """Corners first, X squares last; stable otherwise."""

    def rank(move: Move) -> int:
        i = rules.index(*move)
        if i in CORNERS:
            return 0
        if i in X_SQUARES:
            return 2
        return 1

    return sorted(moves, key=rank)


# ---- core search ----


def minimax(
    board: Board,
    to_move: Player,
    me: Player,
    depth: int,
    alpha: float,
    beta: float,
) -> float:
    opp = rules.opponent(to_move)

    if not rules.has_any_legal_move(board, me) and not rules.has_any_legal_move(
        board, rules.opponent(me)
    ):
        return evaluate(board, me)
    if depth <= 0:
        return evaluate(board, me)

    moves = rules.legal_moves(board, to_move)
    if not moves:
        # Forced pass: the other side moves on the same board.
        return minimax(board, opp, me, depth - 1, alpha, beta)

    if to_move == me:
        value = -math.inf
        for x, y in _order(moves):
            child = rules.apply_move(board, x, y, to_move)
            value = max(value, minimax(child, opp, me, depth - 1, alpha, beta))
            alpha = max(alpha, value)
            if alpha >= beta:
                break
        return value

    value = math.inf
    for x, y in _order(moves):
        child = rules.apply_move(board, x, y, to_move)
        value = min(value, minimax(child, opp, me, depth - 1, alpha, beta))
        beta = min(beta, value)
        if alpha >= beta:
            break
    return value


def choose_move(
    board: Board, side: Player, level: int, rng: Optional[RandomSource] = None
) -> Optional[Move]:
    """Pick a move for ``side``; ``None`` only when it has no legal move.

    Level 0 plays uniformly at random. Levels 1-3 search 1, 3 and 5 plies
    (the candidate move plus the replies below it). Ties keep the first move
    in row-major order.
    """
    moves = rules.legal_moves(board, side)
    if not moves:
        return None

    level = max(0, min(len(SEARCH_DEPTH) - 1, int(level)))
    if level == 0:
        return (rng or RandomSource()).choice(moves)

    depth = SEARCH_DEPTH[level]
    best_move: Optional[Move] = None
    best_score = -math.inf
    for x, y in moves:
        child = rules.apply_move(board, x, y, side)
        score = minimax(child, rules.opponent(side), side, depth - 1, -math.inf, math.inf)
        if best_move is None or score > best_score:
            best_move, best_score = (x, y), score
    return best_move


@dataclass
class MinimaxAI:
    """AI player bound to one colour and difficulty level.

      - MinimaxAI(player=WHITE, level=2)
      - choose(board) -> (x, y) or None
    """

    player: Player
    level: int = 2
    rng: RandomSource = field(default_factory=RandomSource, repr=False)

    @classmethod
    def for_level_name(
        cls, player: Player, name: Optional[str], rng: Optional[RandomSource] = None
    ) -> "MinimaxAI":
        return cls(player=player, level=level_from_name(name), rng=rng or RandomSource())

    @property
    def depth(self) -> int:
        return SEARCH_DEPTH[max(0, min(len(SEARCH_DEPTH) - 1, self.level))]

    def choose(self, board: Board) -> Optional[Move]:
        return choose_move(board, self.player, self.level, self.rng)
