from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Tuple, Union

from .enums import Role


@dataclass(frozen=True)
class Principal:
    """Authenticated caller, built once at the boundary."""

    user_id: int
    roles: Tuple[str, ...] = ()

    @classmethod
    def of(cls, user_id: int, roles: Iterable[Union[str, Role]] = ()) -> "Principal":
        seen: list[str] = []
        for r in roles:
            label = r.value if isinstance(r, Role) else str(r)
            if label not in seen:
                seen.append(label)
        return cls(user_id=int(user_id), roles=tuple(seen))

    def has_role(self, *roles: Union[str, Role]) -> bool:
        wanted = {r.value if isinstance(r, Role) else r for r in roles}
        return any(r in wanted for r in self.roles)
