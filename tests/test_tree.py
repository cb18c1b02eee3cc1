import unittest

from nerdtalk.core.errors import CorruptTreeError
from nerdtalk.services import tree

from fakes import seed_post, use_tables


def ts(n: int) -> str:
    return f"2023-01-01T00:00:00.{n:06d}+00:00"


class TestCollectDescendants(unittest.TestCase):
    def test_depth_first_pre_order(self):
        #   r
        #   ├── a
        #   │   ├── a1
        #   │   │   └── a1x
        #   │   └── a2
        #   └── b
        #       └── b1
        with use_tables() as tables:
            seed_post(tables, "r", created_at=ts(1))
            seed_post(tables, "a", parent_id="r", created_at=ts(2))
            seed_post(tables, "b", parent_id="r", created_at=ts(3))
            seed_post(tables, "a1", parent_id="a", created_at=ts(4))
            seed_post(tables, "b1", parent_id="b", created_at=ts(5))
            seed_post(tables, "a2", parent_id="a", created_at=ts(6))
            seed_post(tables, "a1x", parent_id="a1", created_at=ts(7))
            seed_post(tables, "other", created_at=ts(8))
            found = tree.collect_descendants("r")
        self.assertEqual([p["post_id"] for p in found], ["a", "a1", "a1x", "a2", "b", "b1"])

    def test_leaf_has_no_descendants(self):
        with use_tables() as tables:
            seed_post(tables, "r")
            self.assertEqual(tree.collect_descendants("r"), [])

    def test_deep_chain_does_not_hit_recursion_limit(self):
        depth = 1200
        with use_tables() as tables:
            seed_post(tables, "n0", created_at=ts(0))
            for i in range(1, depth + 1):
                seed_post(tables, f"n{i}", parent_id=f"n{i - 1}", created_at=ts(i))
            found = tree.collect_descendants("n0")
        self.assertEqual(len(found), depth)
        self.assertEqual(found[-1]["post_id"], f"n{depth}")

    def test_cycle_raises_corrupt_tree(self):
        with use_tables() as tables:
            seed_post(tables, "r", parent_id="b", created_at=ts(1))
            seed_post(tables, "a", parent_id="r", created_at=ts(2))
            seed_post(tables, "b", parent_id="a", created_at=ts(3))
            with self.assertRaises(CorruptTreeError) as ctx:
                tree.collect_descendants("r")
        self.assertEqual(ctx.exception.root_id, "r")
        self.assertEqual(ctx.exception.post_id, "r")
