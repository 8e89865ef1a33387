"""Merge plan: the ordered list of profiles applied during a merge."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Iterator

from .document import DEFAULT_PROFILE


@dataclass(frozen=True)
class MergePlan:
    """Ordered profile names; later profiles override earlier ones.

    The default profile is always first and no profile appears twice. Use
    :meth:`from_active` rather than the constructor when the input comes from
    the environment or a command line flag.
    """

    profiles: tuple[str, ...] = (DEFAULT_PROFILE,)

    def __post_init__(self) -> None:
        if not self.profiles or self.profiles[0] != DEFAULT_PROFILE:
            raise ValueError("MergePlan must start with the default profile")
        if len(set(self.profiles)) != len(self.profiles):
            raise ValueError("MergePlan must not contain duplicate profiles")

    @classmethod
    def from_active(cls, active: Iterable[str] | str | None = None) -> "MergePlan":
        """Build a plan from active profile names.

        Accepts an iterable of names or a comma separated string. Blank names
        and duplicates are dropped; an explicit ``default`` entry is ignored
        because the default profile is always applied first.
        """
        if active is None:
            names: Iterable[str] = ()
        elif isinstance(active, str):
            names = active.split(",")
        else:
            names = active

        ordered = [DEFAULT_PROFILE]
        for name in names:
            # A repeated --profile flag may itself hold a comma separated list
            for part in str(name).split(","):
                part = part.strip()
                if part and part not in ordered:
                    ordered.append(part)
        return cls(tuple(ordered))

    @property
    def active(self) -> tuple[str, ...]:
        """Return the profiles applied on top of the default profile."""
        return self.profiles[1:]

    def rank(self, profile: str) -> int | None:
        """Return the position of ``profile`` in the plan, or None if absent."""
        try:
            return self.profiles.index(profile)
        except ValueError:
            return None

    def __contains__(self, profile: object) -> bool:
        return profile in self.profiles

    def __iter__(self) -> Iterator[str]:
        return iter(self.profiles)

    def __len__(self) -> int:
        return len(self.profiles)


__all__ = ["MergePlan"]
