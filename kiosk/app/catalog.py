"""Outfit artwork catalog grouped by gender and body slot."""
from __future__ import annotations

import logging
import random
from pathlib import Path
from typing import Dict, List, Optional

from .state import BodySlot, Gender, OutfitSelection

logger = logging.getLogger(__name__)


def catalog_key(gender: Gender, slot: BodySlot) -> str:
    return f"{gender.value}_{slot.value}"


def placeholder_name(gender: Gender, slot: BodySlot) -> str:
    return f"{gender.value}_{slot.value}_1.png"


class OutfitCatalog:
    """Read-only pool of outfit asset filenames.

    Files are expected to be named ``{gender}_{slot}_{n}.png``. Anything else in
    the directory (logos, stray files) is ignored. The pool never changes after
    construction; an unreadable directory yields an empty catalog and every
    pick falls back to a placeholder filename.
    """

    def __init__(self, files: Optional[Dict[str, List[str]]] = None, *, rng: Optional[random.Random] = None) -> None:
        self._files: Dict[str, List[str]] = {key: sorted(names) for key, names in (files or {}).items()}
        self._rng = rng or random.Random()

    @classmethod
    def from_directory(cls, directory: Path, *, rng: Optional[random.Random] = None) -> "OutfitCatalog":
        try:
            entries = sorted(path.name for path in Path(directory).iterdir() if path.is_file())
        except OSError as exc:
            logger.warning("Failed to enumerate outfit assets in %s: %s", directory, exc)
            return cls(cls._empty_pools(), rng=rng)

        files: Dict[str, List[str]] = {}
        for name in entries:
            if not name.endswith(".png") or "Logo" in name:
                continue
            parts = name[: -len(".png")].split("_")
            if len(parts) != 3:
                continue
            gender, slot, _ = parts
            files.setdefault(f"{gender}_{slot}", []).append(name)

        logger.info(
            "Loaded %d outfit assets across %d pools from %s",
            sum(len(names) for names in files.values()),
            len(files),
            directory,
        )
        return cls(files, rng=rng)

    @staticmethod
    def _empty_pools() -> Dict[str, List[str]]:
        return {catalog_key(gender, slot): [] for gender in Gender for slot in BodySlot}

    def pick_random(self, gender: Gender, slot: BodySlot) -> str:
        pool = self._files.get(catalog_key(gender, slot))
        if not pool:
            return placeholder_name(gender, slot)
        return self._rng.choice(pool)

    def select(self, gender: Gender) -> OutfitSelection:
        return OutfitSelection(**{slot.value: self.pick_random(gender, slot) for slot in BodySlot})

    def pick_idle_set(self) -> OutfitSelection:
        """Pick a gender first so the idle screen shows a coherent look."""

        return self.select(self._rng.choice(list(Gender)))

    def list_all(self) -> Dict[str, List[str]]:
        return {key: list(names) for key, names in self._files.items()}


__all__ = ["OutfitCatalog", "catalog_key", "placeholder_name"]
