"""Animation edges: how one object class or decoration crosses the transition."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import StrEnum

from scenelink.effects import FADE_IN, FADE_OUT, AnimationEffect
from scenelink.template import DecorationSpec
from scenelink.timing import DecorationTiming, ObjectTiming


class LinkType(StrEnum):
    ENTER = "enter"
    LINKED = "linked"
    EXIT = "exit"


@dataclass(frozen=True)
class ObjectMap:
    """Start class id, end class id and the render object that draws them."""

    start: str | None
    end: str | None
    object: str


@dataclass
class IdLink:
    """Instance ids on each side of one correspondence.

    Identity links pair one id with one id; merges pair several ids on one
    side with a single id on the other.
    """

    start: list[str]
    end: list[str]


@dataclass(kw_only=True)
class AnimationEdge(ABC):
    object_map: ObjectMap
    timing: ObjectTiming
    index: int = 0
    prop_list: list[str] = field(default_factory=list)
    linked_by: list[str] = field(default_factory=list)
    is_animating: bool = True
    is_remainder: bool = False

    link_type: LinkType

    @property
    def object_id(self) -> str:
        return self.object_map.object

    @property
    def class_ids(self) -> tuple[str | None, str | None]:
        return (self.object_map.start, self.object_map.end)

    @property
    @abstractmethod
    def counts(self) -> tuple[int, int]:
        """Instance counts on the start and end side."""


@dataclass(kw_only=True)
class EnterEdge(AnimationEdge):
    link_type: LinkType = LinkType.ENTER
    id_list: list[str] = field(default_factory=list)
    effect: AnimationEffect = FADE_IN

    @property
    def counts(self) -> tuple[int, int]:
        return (0, len(self.id_list))


@dataclass(kw_only=True)
class ExitEdge(AnimationEdge):
    link_type: LinkType = LinkType.EXIT
    id_list: list[str] = field(default_factory=list)
    effect: AnimationEffect = FADE_OUT

    @property
    def counts(self) -> tuple[int, int]:
        return (len(self.id_list), 0)


@dataclass(kw_only=True)
class LinkedEdge(AnimationEdge):
    link_type: LinkType = LinkType.LINKED
    id_list: list[IdLink] = field(default_factory=list)
    is_merge: bool = False
    effect: AnimationEffect | None = None

    @property
    def counts(self) -> tuple[int, int]:
        return (
            sum(len(link.start) for link in self.id_list),
            sum(len(link.end) for link in self.id_list),
        )

    @property
    def start_ids(self) -> list[str]:
        return [i for link in self.id_list for i in link.start]

    @property
    def end_ids(self) -> list[str]:
        return [i for link in self.id_list for i in link.end]


Edge = EnterEdge | ExitEdge | LinkedEdge


@dataclass(kw_only=True)
class DecorationEdge:
    """An axis or legend edge keyed by ``owner__visualField__type``."""

    link_type: LinkType
    decoration_id: str
    key: str
    start: list[DecorationSpec] | None = None
    end: list[DecorationSpec] | None = None
    timing: DecorationTiming = field(default_factory=DecorationTiming)
    is_animating: bool = True
    index: int = 0

    @property
    def counts(self) -> tuple[int, int]:
        return (len(self.start or ()), len(self.end or ()))

    @property
    def label(self) -> str:
        specs = self.start or self.end or []
        if not specs:
            return self.decoration_id
        kind = specs[0].axis_or_legend
        start_title = self.start[0].title if self.start else None
        end_title = self.end[0].title if self.end else None
        if start_title is not None and end_title is not None and start_title != end_title:
            return f"{kind}: {start_title} → {end_title}"
        return f"{kind}: {start_title if start_title is not None else end_title}"
