#!/usr/bin/env python3

import argparse
import copy
import enum
import sys
import time
import typing

__version__ = '1.0.0'

MAX_WIDTH = 32


class CellType(enum.Enum):
    BOX = enum.auto()
    SPACE = enum.auto()

    def __str__(self):
        return self.name


class LineKind(enum.Enum):
    ROW = enum.auto()
    COL = enum.auto()

    def __str__(self):
        return self.name


class Coord(typing.NamedTuple):
    row: int
    col: int

    def __str__(self):
        return f'[{self.row + 1}, {self.col + 1}]'


class Line(typing.NamedTuple):
    kind: LineKind
    n: int

    def get_coord(self, index: int) -> Coord:
        if self.kind == LineKind.ROW:
            return Coord(self.n, index)
        elif self.kind == LineKind.COL:
            return Coord(index, self.n)

    def __str__(self):
        return f'{self.kind} {self.n + 1}'


class Board:
    def __init__(self, height: int, width: int):
        if width > MAX_WIDTH:
            raise ValueError(f'board width {width} exceeds the supported maximum {MAX_WIDTH}')

        self._height = height
        self._width = width
        self._mask = (1 << width) - 1
        self._rows = [0] * height

    @property
    def height(self) -> int:
        return self._height

    @property
    def width(self) -> int:
        return self._width

    def col_flag(self, col: int) -> int:
        return 1 << (self._width - col - 1)

    def __getitem__(self, coord: Coord) -> CellType:
        if self._rows[coord.row] & self.col_flag(coord.col):
            return CellType.BOX
        return CellType.SPACE

    def __setitem__(self, coord: Coord, value: CellType):
        flag = self.col_flag(coord.col)
        if value == CellType.BOX:
            self._rows[coord.row] |= flag
        else:
            self._rows[coord.row] &= ~flag

    def get_row(self, row: int) -> int:
        return self._rows[row]

    def set_row(self, row: int, bits: int):
        self._rows[row] = bits & self._mask

    def clear_row(self, row: int):
        self._rows[row] = 0

    def invert(self):
        for row in range(self._height):
            self._rows[row] ^= self._mask

    def box_count(self) -> int:
        return sum(bin(bits).count('1') for bits in self._rows)

    def get_line_content(self, line: Line) -> typing.List[CellType]:
        length = self._width if (line.kind == LineKind.ROW) else self._height
        return [self[line.get_coord(i)] for i in range(length)]

    def __eq__(self, other):
        if not isinstance(other, Board):
            return NotImplemented
        return (self._height, self._width, self._rows) == (other._height, other._width, other._rows)

    def __str__(self):
        return NonogramIO().format_board(self)


class NonogramPuzzle(typing.NamedTuple):
    row_clues: typing.Tuple[typing.Tuple[int]]
    col_clues: typing.Tuple[typing.Tuple[int]]

    @property
    def height(self) -> int:
        return len(self.row_clues)

    @property
    def width(self) -> int:
        return len(self.col_clues)

    def get_line_clues(self, line: Line) -> typing.Tuple[int]:
        if line.kind == LineKind.ROW:
            return self.row_clues[line.n]
        elif line.kind == LineKind.COL:
            return self.col_clues[line.n]

    def normalized(self) -> 'NonogramPuzzle':
        """Same puzzle with zero entries dropped, so a decoded ``[0]`` reads as a blank line."""
        strip = lambda all_clues: tuple(tuple(filter(None, clues)) for clues in all_clues)
        return NonogramPuzzle(strip(self.row_clues), strip(self.col_clues))


class ParadoxError(Exception):
    pass


class FailedError(Exception):
    pass


class SearchStats:
    def __init__(self):
        self.placements = 0
        self.rejections = 0
        self.backtracks = 0

    def __repr__(self):
        return f'<placements={self.placements} rejections={self.rejections} backtracks={self.backtracks}>'


def line_candidates(clues: typing.Sequence[int], length: int) -> typing.Tuple[int]:
    clues = tuple(filter(None, clues))
    # Each partial placement is (bits, consumed), consumed counting the trailing gap.
    placements = [(0, 0)]
    for i, value in enumerate(clues):
        remaining = sum(v + 1 for v in clues[i + 1:])
        end = length - (value + remaining)
        flag = (1 << value) - 1

        extended = []
        for bits, consumed in placements:
            for start in range(consumed, end + 1):
                extended.append((bits | (flag << (length - value - start)), start + value + 1))

        placements = extended

    return tuple(bits for bits, _ in placements)


def decode_line(cells: typing.Iterable) -> typing.List[int]:
    """Run-lengths of the filled cells of a line, ``[0]`` when there are none."""
    runs = [0]
    index = 0
    prev = False
    for cell in cells:
        if cell:
            if len(runs) == index:
                runs.append(1)
            else:
                runs[index] += 1
        elif prev:
            index += 1

        prev = bool(cell)

    return runs


def partial_check(board: Board, col_clues: typing.Sequence[typing.Sequence[int]], row_index: int) -> bool:
    last = min(row_index, board.height - 1)
    complete = last == board.height - 1
    for col, clues in enumerate(col_clues):
        flag = board.col_flag(col)
        clue_index = 0
        count = 0
        prev = False

        for row in range(last + 1):
            filled = bool(board.get_row(row) & flag)
            if filled:
                count += 1
            elif prev:
                if clue_index >= len(clues) or clues[clue_index] != count:
                    return False

                clue_index += 1
                count = 0

            prev = filled

        # An open run may still grow, but not past its clue.
        if prev:
            if clue_index >= len(clues) or clues[clue_index] < count:
                return False

            if complete:
                if clues[clue_index] != count:
                    return False
                clue_index += 1

        # Once every row is assigned the column must use up all of its clues.
        if complete and clue_index != len(clues):
            return False

    return True


class CandidateCache:
    def __init__(self, row_clues: typing.Sequence[typing.Sequence[int]], width: int):
        self._row_clues = row_clues
        self._width = width
        self._candidates: typing.Dict[int, typing.Tuple[int]] = {}

    def get(self, row: int) -> typing.Tuple[int]:
        candidates = self._candidates.get(row)
        if candidates is None:
            candidates = line_candidates(self._row_clues[row], self._width)
            self._candidates[row] = candidates

        return candidates

    def __len__(self):
        return len(self._candidates)


class BacktrackSearch:
    def __init__(self, puzzle: NonogramPuzzle, visible: bool=False, io: 'NonogramIO'=None):
        self._puzzle = puzzle.normalized()
        self._board = Board(puzzle.height, puzzle.width)
        self._cache = CandidateCache(self._puzzle.row_clues, puzzle.width)
        self._visible = visible
        self._io = io or NonogramIO()
        self.stats = SearchStats()

    @property
    def board(self) -> Board:
        return self._board

    @property
    def cache(self) -> CandidateCache:
        return self._cache

    def run(self) -> bool:
        return self._search(0)

    def _search(self, row: int) -> bool:
        if row >= self._board.height:
            return True

        indent = '  ' * row
        for bits in self._cache.get(row):
            self._board.set_row(row, bits)
            self.stats.placements += 1
            if self._visible:
                print(f'{indent}[Row {row + 1}] try {self._io.format_line(bits, self._board.width)}')

            if partial_check(self._board, self._puzzle.col_clues, row):
                if self._search(row + 1):
                    return True
            else:
                self.stats.rejections += 1

            self._board.clear_row(row)

        if self._visible:
            print(f'{indent}[Backtrack] no candidate left for row {row + 1}')
        self.stats.backtracks += 1
        return False


class NonogramIO:
    class SymbolColl(typing.NamedTuple):
        box: str
        space: str
        col_fence: str
        row_fence: str
        cross_fence: str

    def __init__(self):
        self.line_fence = 0
        self.row_fence = 0
        self.col_fence = 0
        self.full_width_enabled = False

        self.symbols = self.SymbolColl('@', '*', '|', '-', '+')
        self.full_width_symbols = self.SymbolColl('䨻', 'ｘ', '｜', '－', '＋')
        self.box_symbols = { 'o', self.symbols.box, self.full_width_symbols.box }
        self.fence_symbols = { self.symbols.col_fence, self.full_width_symbols.col_fence }

    def format_line(self, bits: int, length: int, fence=None) -> str:
        fence = self.line_fence if fence is None else fence
        parts = []
        for col in range(length):
            if fence > 0 and col > 0 and col % fence == 0:
                parts.append(self.symbols.col_fence)

            if bits & (1 << (length - col - 1)):
                parts.append(self.symbols.box)
            else:
                parts.append(self.symbols.space)

        return ''.join(parts)

    def format_board(self, board: Board, row_fence=None, col_fence=None, full_width=None) -> str:
        row_fence = self.row_fence if row_fence is None else row_fence
        col_fence = self.col_fence if col_fence is None else col_fence
        full_width = self.full_width_enabled if full_width is None else full_width
        symbols = self.full_width_symbols if full_width else self.symbols

        fence_parts = []
        for col in range(board.width):
            if col_fence > 0 and col > 0 and col % col_fence == 0:
                fence_parts.append(symbols.cross_fence)
            fence_parts.append(symbols.row_fence)

        fence_line = ''.join(fence_parts)

        lines = []
        for row in range(board.height):
            if row_fence > 0 and row > 0 and row % row_fence == 0:
                lines.append(fence_line)

            parts = []
            for col in range(board.width):
                if col_fence > 0 and col > 0 and col % col_fence == 0:
                    parts.append(symbols.col_fence)

                if board[Coord(row, col)] == CellType.BOX:
                    parts.append(symbols.box)
                else:
                    parts.append(symbols.space)

            lines.append(''.join(parts))

        return '\n'.join(lines)

    def format_clues(self, clues: typing.Sequence[int]) -> str:
        return ' '.join(str(x) for x in clues) or '0'

    def parse_line(self, text: str, length: int) -> int:
        cells = []
        for c in text:
            c = c.lower()
            if c in self.fence_symbols:
                continue
            cells.append(c in self.box_symbols)

        if len(cells) > length:
            raise ValueError(f'line `{text}` is longer than given length {length}')

        bits = 0
        for col, filled in enumerate(cells):
            if filled:
                bits |= 1 << (length - col - 1)

        return bits

    def parse_clues(self, text: str) -> typing.Tuple[int]:
        return tuple(filter(None, (int(x) for x in text.split())))

    def load_puzzle(self, file_path) -> NonogramPuzzle:
        row_clues = []
        col_clues = []
        with (open(file_path) if file_path else sys.stdin) as f:
            section = 0
            for line in f:
                line = line.rstrip('\r\n')
                if line.startswith('#'):
                    continue

                if section == 0:
                    if line == '':
                        if row_clues:
                            section += 1
                    else:
                        row_clues.append(self.parse_clues(line))
                elif section == 1:
                    if line == '':
                        break
                    else:
                        col_clues.append(self.parse_clues(line))

        return NonogramPuzzle(tuple(row_clues), tuple(col_clues))

    def dump_puzzle(self, puzzle: NonogramPuzzle) -> str:
        lines = [self.format_clues(clues) for clues in puzzle.row_clues]
        lines.append('')
        lines.extend(self.format_clues(clues) for clues in puzzle.col_clues)
        return '\n'.join(lines) + '\n'


class NonogramSolver:
    def __init__(self):
        self.search_visible = False
        self.stats: SearchStats = None

        self.io = NonogramIO()

    def solve(self, puzzle: NonogramPuzzle) -> Board:
        search = BacktrackSearch(puzzle, visible=self.search_visible, io=self.io)
        solved = search.run()
        self.stats = search.stats
        if not solved:
            raise ParadoxError(f'puzzle ({puzzle.height} rows, {puzzle.width} cols) has no solution')

        if self.search_visible:
            print(f'[Success] find a valid solution {self.stats}')
            print()

        return search.board

    def invert(self, board: Board) -> Board:
        result = copy.deepcopy(board)
        result.invert()
        return result

    def decode(self, board: Board) -> typing.List[typing.List[int]]:
        results = []
        for col in range(board.width):
            content = board.get_line_content(Line(LineKind.COL, col))
            results.append(decode_line(value == CellType.BOX for value in content))

        for row in range(board.height):
            content = board.get_line_content(Line(LineKind.ROW, row))
            results.append(decode_line(value == CellType.BOX for value in content))

        return results

    def derive_puzzle(self, board: Board) -> NonogramPuzzle:
        decoded = self.decode(board)
        return NonogramPuzzle(tuple(decoded[board.width:]), tuple(decoded[:board.width])).normalized()

    def pre_check(self, puzzle: NonogramPuzzle):
        if puzzle.width > MAX_WIDTH:
            raise FailedError(f'puzzle width {puzzle.width} exceeds the supported maximum {MAX_WIDTH}')

        puzzle = puzzle.normalized()
        row_boxes = self._count_fitting_boxes(puzzle, LineKind.ROW)
        col_boxes = self._count_fitting_boxes(puzzle, LineKind.COL)
        if row_boxes != col_boxes:
            raise FailedError(f'row clues ask for {row_boxes} boxes but col clues ask for {col_boxes}')

    def _count_fitting_boxes(self, puzzle: NonogramPuzzle, line_kind: LineKind) -> int:
        if line_kind == LineKind.ROW:
            count, length = puzzle.height, puzzle.width
        else:
            count, length = puzzle.width, puzzle.height

        boxes = 0
        for n in range(count):
            line = Line(line_kind, n)
            clues = puzzle.get_line_clues(line)
            needed = sum(clues) + max(len(clues) - 1, 0)
            if needed > length:
                raise FailedError(f'{line} clues {clues} need {needed} cells but the line has {length}')
            boxes += sum(clues)

        return boxes

    def verify(self, puzzle: NonogramPuzzle, board: Board):
        if (board.height, board.width) != (puzzle.height, puzzle.width):
            raise FailedError(f'board size {board.height}x{board.width} does not match'
                              f' puzzle size {puzzle.height}x{puzzle.width}')

        decoded = self.decode(board)
        self._compare_boxes_with_clues(decoded[:board.width], puzzle.col_clues, LineKind.COL)
        self._compare_boxes_with_clues(decoded[board.width:], puzzle.row_clues, LineKind.ROW)

    def _compare_boxes_with_clues(self, all_boxes, all_clues, line_kind):
        for i in range(len(all_boxes)):
            boxes = tuple(filter(None, all_boxes[i]))
            clues = tuple(filter(None, all_clues[i]))
            if boxes != clues:
                raise FailedError(f'{Line(line_kind, i)} boxes {boxes} not match with clues {clues}')


def strtobool(s: str) -> bool:
    s = s.lower()
    if s in ('y', 'yes', 't', 'true', 'on', '1'):
        return True
    elif s in ('n', 'no', 'f', 'false', 'off', '0'):
        return False
    else:
        raise ValueError(f'invalid truth value {s!r}')


def create_arg_parser() -> argparse.ArgumentParser:
    int_pair = lambda s: tuple(int(x) for x in s.split(',', 1))

    parser = argparse.ArgumentParser(description='Nonograms Puzzle Solver and Inverter', allow_abbrev=False)
    parser.add_argument('--version', action='version', version=f'nonogram_inverter {__version__}')
    subparsers = parser.add_subparsers(dest='mode', required=True, help='choose a mode')

    parser_g = subparsers.add_parser('gram', help='gram mode')
    parser_g.add_argument('puzzle_file', nargs='?',
                          help='a file contains the nanogram puzzle, see puzzles/*.txt for example'
                          ' (default: read from stdin)')
    parser_g.add_argument('--invert', type=strtobool,
                          nargs='?', const=True, default=True, choices=[True, False],
                          help='whether print the inverted board and its clues after solving (default: true)')
    parser_g.add_argument('--show-search', type=strtobool,
                          nargs='?', const=True, default=False, choices=[True, False],
                          help='whether print every placement and backtracking step (default: false)')
    parser_g.add_argument('--grid', type=int_pair, nargs='?', default=(0, 0), const=(5, 5), metavar='WIDTH[,HEIGHT]',
                          help='show major grid line when printing gram with the given size (default: 5,5)')
    parser_g.add_argument('--line-fence', type=int, default=5,
                          help='if greater than 0, print fence when printing single line (default: 5)')
    parser_g.add_argument('--full-width', type=strtobool,
                          nargs='?', const=True, default=True, choices=[True, False],
                          help='whether use full width char when print gram (default: true)')

    parser_l = subparsers.add_parser('line', help='single line mode, list every candidate of a line')
    parser_l.add_argument('length', type=int,
                          help='length of line')
    parser_l.add_argument('clues', type=int, nargs='*', metavar='clue',
                          help='clue numbers (none for a blank line)')
    parser_l.add_argument('--line-fence', type=int, default=5,
                          help='if greater than 0, print fence when printing single line (default: 5)')

    return parser


def create_solver(args) -> NonogramSolver:
    solver = NonogramSolver()
    solver.io.line_fence = args.line_fence
    if args.mode == 'gram':
        solver.search_visible = args.show_search
        solver.io.col_fence = args.grid[0]
        solver.io.row_fence = args.grid[-1]
        solver.io.full_width_enabled = args.full_width

    return solver


def main():
    parser = create_arg_parser()
    args = parser.parse_args()

    solver = create_solver(args)
    if args.mode == 'gram':
        started = time.perf_counter()
        puzzle = solver.io.load_puzzle(args.puzzle_file)
        solver.pre_check(puzzle)
        board = solver.solve(puzzle)
        solver.verify(puzzle, board)
        print('Original:')
        print(solver.io.format_board(board))
        if args.invert:
            inverted = solver.invert(board)
            print('Inverted:')
            print(solver.io.format_board(inverted))
            for clues in solver.decode(inverted):
                print(solver.io.format_clues(clues))

        elapsed = (time.perf_counter() - started) * 1000
        print(f'{elapsed:.0f} ms {solver.stats}')
    elif args.mode == 'line':
        clues = tuple(filter(None, args.clues))
        candidates = line_candidates(clues, args.length)
        print(f'candidates of line: {clues}')
        for bits in candidates:
            print(solver.io.format_line(bits, args.length))
        print(f'total: {len(candidates)}')
        print()


if __name__ == '__main__':
    main()
