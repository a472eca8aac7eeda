import glob
import os
import unittest

import ddt

from nonogram_inverter import *


PUZZLE_DIR = os.path.join(os.path.dirname(os.path.abspath(__file__)), 'puzzles')


def solvable_grams():
    return sorted(glob.glob(os.path.join(PUZZLE_DIR, '*.txt'), recursive=False))


@ddt.ddt
class TestCase(unittest.TestCase):
    @ddt.data(*solvable_grams())
    def test_solve_gram(self, gram_file_path):
        solver = NonogramSolver()
        puzzle = solver.io.load_puzzle(gram_file_path)

        solver.pre_check(puzzle)
        board = solver.solve(puzzle)
        solver.verify(puzzle, board)

        decoded = solver.decode(board)
        self.assertEqual(len(decoded), puzzle.width + puzzle.height)
        for runs, clues in zip(decoded, puzzle.col_clues + puzzle.row_clues):
            self.assertEqual(tuple(runs), clues or (0,))

    @ddt.data(*solvable_grams())
    def test_invert_gram(self, gram_file_path):
        solver = NonogramSolver()
        puzzle = solver.io.load_puzzle(gram_file_path)
        board = solver.solve(puzzle)

        inverted = solver.invert(board)
        self.assertEqual(inverted.box_count(), puzzle.width * puzzle.height - board.box_count())
        for row in range(board.height):
            self.assertEqual(inverted.get_row(row) ^ board.get_row(row), (1 << board.width) - 1)

        derived = solver.derive_puzzle(inverted)
        self.assertEqual(sum(map(sum, derived.row_clues)), inverted.box_count())
        self.assertEqual(sum(map(sum, derived.col_clues)), inverted.box_count())
        solver.verify(derived, inverted)

    def test_bundled_grams(self):
        names = [os.path.basename(p) for p in solvable_grams()]
        self.assertIn('stairs-4x4.txt', names)
        self.assertIn('sword-15x15.txt', names)


if __name__ == '__main__':
    unittest.main()
