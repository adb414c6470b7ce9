"""Layout planning models."""

import os
from dataclasses import dataclass, field
from enum import Enum
from typing import List


class Relationship(Enum):
    """How a top-level source entry relates to the target worktree path."""
    DISJOINT = "disjoint"
    NESTED = "nested"  # Entry is an ancestor of the target path
    MERGE = "merge"  # Destination directory already exists


@dataclass
class EntryMove:
    """One top-level entry of the content directory and where it goes."""
    name: str
    source: str
    destination: str
    relationship: Relationship = Relationship.DISJOINT


@dataclass
class LayoutPlan:
    """Target layout for a single worktree under a repository root."""
    root: str
    branch: str
    store_path: str
    worktree_path: str
    entries: List[EntryMove] = field(default_factory=list)

    def relationship_for(self, entry: EntryMove) -> Relationship:
        """Re-evaluate an entry's relationship against the current filesystem.

        Creating the intermediate directories of a nested branch name can make a
        destination appear after planning, so MERGE is decided at move time.
        """
        if entry.relationship == Relationship.NESTED:
            return entry.relationship
        if (
            os.path.isdir(entry.destination)
            and not os.path.islink(entry.destination)
            and os.path.isdir(entry.source)
            and not os.path.islink(entry.source)
        ):
            return Relationship.MERGE
        return Relationship.DISJOINT
