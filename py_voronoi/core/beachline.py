"""
Beachline of the sweep: the ordered sequence of parabolic arcs.

Arcs live in an arena keyed by integer handles. Left/right neighbour links
give O(1) adjacency; a red-black tree over the same arcs gives O(log n)
location of the arc above a point. The tree is never keyed by coordinates:
the order of arcs is fixed at insertion time and searches compare against
breakpoints recomputed at the current directrix.
"""

import math
from dataclasses import dataclass
from typing import Dict, Iterator, List, Optional, Tuple

from .diagram import DiagramInvariantError, Site
from .geometry import EPS, breakpoint_x, circumcircle

# Handle of the tree sentinel; real arcs start at 1
NIL = 0


@dataclass
class Arc:
    site: Optional[Site]
    left: int = NIL  # beachline neighbours
    right: int = NIL
    parent: int = NIL  # red-black tree links
    lchild: int = NIL
    rchild: int = NIL
    red: bool = False


def _handle(arc: int) -> Optional[int]:
    return None if arc == NIL else arc


class Beachline:
    """Arcs ordered left to right at the current directrix."""

    def __init__(self, epsilon: float = EPS):
        self._arcs: Dict[int, Arc] = {NIL: Arc(site=None)}
        self._root = NIL
        self._next_id = 1
        self.directrix = -math.inf
        self.epsilon = epsilon

    def __len__(self) -> int:
        return len(self._arcs) - 1

    def __iter__(self) -> Iterator[int]:
        """Arc handles from left to right."""
        if self._root == NIL:
            return
        arc = self._minimum(self._root)
        while arc != NIL:
            yield arc
            arc = self._arcs[arc].right

    def is_empty(self) -> bool:
        return self._root == NIL

    def _get(self, arc: int) -> Arc:
        node = self._arcs.get(arc) if arc != NIL else None
        if node is None:
            raise DiagramInvariantError(f"arc {arc} is not on the beachline")
        return node

    def site_of(self, arc: int) -> Site:
        return self._get(arc).site

    def neighbours(self, arc: int) -> Tuple[Optional[int], Optional[int]]:
        node = self._get(arc)
        return _handle(node.left), _handle(node.right)

    def left_breakpoint(self, arc: int) -> float:
        node = self._get(arc)
        if node.left == NIL:
            return -math.inf
        return breakpoint_x(self._arcs[node.left].site.point, node.site.point, self.directrix)

    def right_breakpoint(self, arc: int) -> float:
        node = self._get(arc)
        if node.right == NIL:
            return math.inf
        return breakpoint_x(node.site.point, self._arcs[node.right].site.point, self.directrix)

    # Queries

    def find_arc_above(self, x: float) -> Optional[int]:
        """Locate the arc whose breakpoints bracket ``x``."""
        node = self._root
        while node != NIL:
            if x < self.left_breakpoint(node):
                child = self._arcs[node].lchild
            elif x >= self.right_breakpoint(node):
                child = self._arcs[node].rchild
            else:
                return node
            if child == NIL:
                # Breakpoints out of order by rounding; the closest arc wins
                return node
            node = child
        return None

    def find_arc_above_linear(self, x: float) -> Optional[int]:
        """Left-to-right scan equivalent of ``find_arc_above``."""
        current = None
        for arc in self:
            if self.left_breakpoint(arc) > x:
                break
            current = arc
        return current

    def circumcircle_for(self, arc: int):
        """Circle through the sites of ``arc`` and both of its neighbours."""
        node = self._get(arc)
        if node.left == NIL or node.right == NIL:
            return None
        return circumcircle(self._arcs[node.left].site.point, node.site.point,
                            self._arcs[node.right].site.point, self.epsilon)

    # Mutation

    def _new_arc(self, site: Site) -> int:
        arc = self._next_id
        self._next_id += 1
        self._arcs[arc] = Arc(site=site)
        return arc

    def insert_arc(self, site: Site, above: Optional[int] = None) -> int:
        """
        Add an arc for ``site``.

        Without ``above`` the arc becomes the only arc. Otherwise ``above`` is
        split: it keeps the left part, the new arc follows it and a copy of
        ``above`` takes the right part.

        Returns:
            Handle of the new arc
        """
        if above is None:
            if self._root != NIL:
                raise DiagramInvariantError("beachline is not empty")
            arc = self._new_arc(site)
            self._root = arc
            return arc

        above_node = self._get(above)
        arc = self._new_arc(site)
        right_copy = self._new_arc(above_node.site)
        self._link_after(above, arc)
        self._link_after(arc, right_copy)
        self._tree_insert_after(above, arc)
        self._tree_insert_after(arc, right_copy)
        return arc

    def insert_beside(self, site: Site, arc: int) -> int:
        """Add an arc next to ``arc`` without splitting it."""
        node = self._get(arc)
        new_arc = self._new_arc(site)
        if site.x >= node.site.x:
            self._link_after(arc, new_arc)
            self._tree_insert_after(arc, new_arc)
        else:
            self._link_before(arc, new_arc)
            self._tree_insert_before(arc, new_arc)
        return new_arc

    def remove_arc(self, arc: int) -> Tuple[Optional[int], Optional[int]]:
        """Unlink ``arc`` and return its former (left, right) neighbours."""
        node = self._get(arc)
        left, right = node.left, node.right
        if left != NIL:
            self._arcs[left].right = right
        if right != NIL:
            self._arcs[right].left = left
        self._tree_delete(arc)
        del self._arcs[arc]
        return _handle(left), _handle(right)

    def _link_after(self, arc: int, new_arc: int) -> None:
        arcs = self._arcs
        right = arcs[arc].right
        arcs[new_arc].left = arc
        arcs[new_arc].right = right
        if right != NIL:
            arcs[right].left = new_arc
        arcs[arc].right = new_arc

    def _link_before(self, arc: int, new_arc: int) -> None:
        arcs = self._arcs
        left = arcs[arc].left
        arcs[new_arc].right = arc
        arcs[new_arc].left = left
        if left != NIL:
            arcs[left].right = new_arc
        arcs[arc].left = new_arc

    # Red-black tree

    def _minimum(self, node: int) -> int:
        while self._arcs[node].lchild != NIL:
            node = self._arcs[node].lchild
        return node

    def _maximum(self, node: int) -> int:
        while self._arcs[node].rchild != NIL:
            node = self._arcs[node].rchild
        return node

    def _rotate_left(self, x: int) -> None:
        arcs = self._arcs
        x_node = arcs[x]
        y = x_node.rchild
        y_node = arcs[y]
        x_node.rchild = y_node.lchild
        if y_node.lchild != NIL:
            arcs[y_node.lchild].parent = x
        y_node.parent = x_node.parent
        if x_node.parent == NIL:
            self._root = y
        elif x == arcs[x_node.parent].lchild:
            arcs[x_node.parent].lchild = y
        else:
            arcs[x_node.parent].rchild = y
        y_node.lchild = x
        x_node.parent = y

    def _rotate_right(self, x: int) -> None:
        arcs = self._arcs
        x_node = arcs[x]
        y = x_node.lchild
        y_node = arcs[y]
        x_node.lchild = y_node.rchild
        if y_node.rchild != NIL:
            arcs[y_node.rchild].parent = x
        y_node.parent = x_node.parent
        if x_node.parent == NIL:
            self._root = y
        elif x == arcs[x_node.parent].rchild:
            arcs[x_node.parent].rchild = y
        else:
            arcs[x_node.parent].lchild = y
        y_node.rchild = x
        x_node.parent = y

    def _tree_insert_after(self, arc: int, new_arc: int) -> None:
        arcs = self._arcs
        if arcs[arc].rchild == NIL:
            arcs[arc].rchild = new_arc
            arcs[new_arc].parent = arc
        else:
            successor = self._minimum(arcs[arc].rchild)
            arcs[successor].lchild = new_arc
            arcs[new_arc].parent = successor
        self._insert_fixup(new_arc)

    def _tree_insert_before(self, arc: int, new_arc: int) -> None:
        arcs = self._arcs
        if arcs[arc].lchild == NIL:
            arcs[arc].lchild = new_arc
            arcs[new_arc].parent = arc
        else:
            predecessor = self._maximum(arcs[arc].lchild)
            arcs[predecessor].rchild = new_arc
            arcs[new_arc].parent = predecessor
        self._insert_fixup(new_arc)

    def _insert_fixup(self, z: int) -> None:
        arcs = self._arcs
        arcs[z].red = True
        while arcs[arcs[z].parent].red:
            parent = arcs[z].parent
            grandparent = arcs[parent].parent
            if parent == arcs[grandparent].lchild:
                uncle = arcs[grandparent].rchild
                if arcs[uncle].red:
                    arcs[parent].red = False
                    arcs[uncle].red = False
                    arcs[grandparent].red = True
                    z = grandparent
                    continue
                if z == arcs[parent].rchild:
                    z = parent
                    self._rotate_left(z)
                    parent = arcs[z].parent
                    grandparent = arcs[parent].parent
                arcs[parent].red = False
                arcs[grandparent].red = True
                self._rotate_right(grandparent)
            else:
                uncle = arcs[grandparent].lchild
                if arcs[uncle].red:
                    arcs[parent].red = False
                    arcs[uncle].red = False
                    arcs[grandparent].red = True
                    z = grandparent
                    continue
                if z == arcs[parent].lchild:
                    z = parent
                    self._rotate_right(z)
                    parent = arcs[z].parent
                    grandparent = arcs[parent].parent
                arcs[parent].red = False
                arcs[grandparent].red = True
                self._rotate_left(grandparent)
        arcs[self._root].red = False

    def _transplant(self, u: int, v: int) -> None:
        arcs = self._arcs
        parent = arcs[u].parent
        if parent == NIL:
            self._root = v
        elif u == arcs[parent].lchild:
            arcs[parent].lchild = v
        else:
            arcs[parent].rchild = v
        # The sentinel's parent is written too, the delete fixup relies on it
        arcs[v].parent = parent

    def _tree_delete(self, z: int) -> None:
        arcs = self._arcs
        z_node = arcs[z]
        removed_red = z_node.red
        if z_node.lchild == NIL:
            x = z_node.rchild
            self._transplant(z, x)
        elif z_node.rchild == NIL:
            x = z_node.lchild
            self._transplant(z, x)
        else:
            y = self._minimum(z_node.rchild)
            y_node = arcs[y]
            removed_red = y_node.red
            x = y_node.rchild
            if y_node.parent == z:
                arcs[x].parent = y
            else:
                self._transplant(y, x)
                y_node.rchild = z_node.rchild
                arcs[y_node.rchild].parent = y
            self._transplant(z, y)
            y_node.lchild = z_node.lchild
            arcs[y_node.lchild].parent = y
            y_node.red = z_node.red
        if not removed_red:
            self._delete_fixup(x)
        arcs[NIL].parent = NIL

    def _delete_fixup(self, x: int) -> None:
        arcs = self._arcs
        while x != self._root and not arcs[x].red:
            parent = arcs[x].parent
            if x == arcs[parent].lchild:
                w = arcs[parent].rchild
                if arcs[w].red:
                    arcs[w].red = False
                    arcs[parent].red = True
                    self._rotate_left(parent)
                    w = arcs[parent].rchild
                if not arcs[arcs[w].lchild].red and not arcs[arcs[w].rchild].red:
                    arcs[w].red = True
                    x = parent
                else:
                    if not arcs[arcs[w].rchild].red:
                        arcs[arcs[w].lchild].red = False
                        arcs[w].red = True
                        self._rotate_right(w)
                        w = arcs[parent].rchild
                    arcs[w].red = arcs[parent].red
                    arcs[parent].red = False
                    arcs[arcs[w].rchild].red = False
                    self._rotate_left(parent)
                    x = self._root
            else:
                w = arcs[parent].lchild
                if arcs[w].red:
                    arcs[w].red = False
                    arcs[parent].red = True
                    self._rotate_right(parent)
                    w = arcs[parent].lchild
                if not arcs[arcs[w].rchild].red and not arcs[arcs[w].lchild].red:
                    arcs[w].red = True
                    x = parent
                else:
                    if not arcs[arcs[w].lchild].red:
                        arcs[arcs[w].rchild].red = False
                        arcs[w].red = True
                        self._rotate_left(w)
                        w = arcs[parent].lchild
                    arcs[w].red = arcs[parent].red
                    arcs[parent].red = False
                    arcs[arcs[w].lchild].red = False
                    self._rotate_right(parent)
                    x = self._root
        arcs[x].red = False

    def validate(self) -> None:
        """Check neighbour links against the tree and the red-black rules."""
        arcs = self._arcs
        if arcs[NIL].red:
            raise DiagramInvariantError("sentinel is red")

        in_order: List[int] = []
        stack: List[int] = []
        node = self._root
        while stack or node != NIL:
            while node != NIL:
                stack.append(node)
                node = arcs[node].lchild
            node = stack.pop()
            in_order.append(node)
            node = arcs[node].rchild

        linked = list(self)
        if in_order != linked or len(linked) != len(self):
            raise DiagramInvariantError("tree order and neighbour links disagree")
        for left, right in zip(linked, linked[1:]):
            if arcs[left].right != right or arcs[right].left != left:
                raise DiagramInvariantError(f"arcs {left} and {right} are not mutually linked")
        if linked and (arcs[linked[0]].left != NIL or arcs[linked[-1]].right != NIL):
            raise DiagramInvariantError("beachline ends are linked to other arcs")
        if arcs[self._root].red:
            raise DiagramInvariantError("root is red")

        def black_height(node: int) -> int:
            if node == NIL:
                return 1
            n = arcs[node]
            for child in (n.lchild, n.rchild):
                if child != NIL and arcs[child].parent != node:
                    raise DiagramInvariantError(f"arc {child} has a wrong parent")
                if n.red and arcs[child].red:
                    raise DiagramInvariantError(f"red arc {node} has a red child")
            left_height = black_height(n.lchild)
            if left_height != black_height(n.rchild):
                raise DiagramInvariantError(f"unbalanced subtree below arc {node}")
            return left_height + (0 if n.red else 1)

        black_height(self._root)
