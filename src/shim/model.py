"""Shim model — shims, subcommand hooks, and the registry keyed by program."""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any


def parse_env(assignments: Iterable[str]) -> dict[str, str]:
    """Parse ``KEY=VALUE`` strings into a dict.

    The value may be empty and may itself contain ``=``. Later assignments
    of the same key win.

    Raises:
        ShimConfigError: If an assignment has no ``=`` or an empty key.
    """
    from shim import ShimConfigError

    env: dict[str, str] = {}
    for item in assignments:
        key, sep, value = item.partition("=")
        if not sep or not key.strip():
            raise ShimConfigError(f"Invalid env assignment '{item}' (expected KEY=VALUE)")
        env[key.strip()] = value
    return env


@dataclass(frozen=True)
class SubcommandHook:
    """A command body run for a shim, optionally scoped to a subcommand.

    ``on_subcommand=None`` is a default hook: it only fires when the
    invocation has no subcommand token at all.
    """

    run: str
    on_subcommand: str | None = None
    env: tuple[str, ...] = ()

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> SubcommandHook:
        env = tuple(data.get("env") or ())
        parse_env(env)
        return cls(run=data["run"], on_subcommand=data.get("on_subcommand"), env=env)

    def matches(self, first_arg: str) -> bool:
        if self.on_subcommand is None:
            return first_arg == ""
        return self.on_subcommand == first_arg

    def env_vars(self) -> dict[str, str]:
        return parse_env(self.env)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {}
        if self.on_subcommand is not None:
            data["on_subcommand"] = self.on_subcommand
        if self.env:
            data["env"] = list(self.env)
        data["run"] = self.run
        return data


@dataclass(frozen=True)
class Shim:
    """Hooks intercepting one named program."""

    program: str
    pre: tuple[SubcommandHook, ...] = ()
    override: tuple[SubcommandHook, ...] = ()
    post: tuple[SubcommandHook, ...] = ()
    env: tuple[str, ...] = ()
    source: str | None = field(default=None, compare=False)

    def __post_init__(self) -> None:
        from shim import ShimConfigError

        if not self.program:
            raise ShimConfigError("Shim program name must be non-empty")

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], source: str | None = None) -> Shim:
        """Build a shim from a parsed (and schema-validated) mapping."""

        def hooks(key: str) -> tuple[SubcommandHook, ...]:
            return tuple(SubcommandHook.from_dict(h) for h in data.get(key) or ())

        env = tuple(data.get("env") or ())
        parse_env(env)
        return cls(
            program=data["program"],
            pre=hooks("pre"),
            override=hooks("override"),
            post=hooks("post"),
            env=env,
            source=source,
        )

    def program_name(self) -> str:
        return self.program

    def pre_hooks(self) -> tuple[SubcommandHook, ...]:
        return self.pre

    def override_hooks(self) -> tuple[SubcommandHook, ...]:
        return self.override

    def post_hooks(self) -> tuple[SubcommandHook, ...]:
        return self.post

    def env_vars(self) -> dict[str, str]:
        return parse_env(self.env)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"program": self.program}
        for key in ("pre", "override", "post"):
            hooks = getattr(self, key)
            if hooks:
                data[key] = [h.to_dict() for h in hooks]
        if self.env:
            data["env"] = list(self.env)
        return data


class ShimRegistry(Mapping[str, Shim]):
    """Read-only mapping of program name -> Shim.

    Built once per invocation; a later shim for the same program replaces
    the earlier one (no merging of hook lists).
    """

    def __init__(self, shims: Mapping[str, Shim] | None = None):
        self._shims: Mapping[str, Shim] = MappingProxyType(dict(shims or {}))

    @classmethod
    def from_shims(cls, shims: Iterable[Shim]) -> ShimRegistry:
        collected: dict[str, Shim] = {}
        for shim in shims:
            collected[shim.program] = shim
        return cls(collected)

    def __getitem__(self, program: str) -> Shim:
        return self._shims[program]

    def __iter__(self) -> Iterator[str]:
        return iter(self._shims)

    def __len__(self) -> int:
        return len(self._shims)

    def __repr__(self) -> str:
        return f"ShimRegistry({sorted(self._shims)!r})"

    def programs(self) -> list[str]:
        return sorted(self._shims)
