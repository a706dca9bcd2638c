"""Exception types raised by scenelink."""


class SceneLinkError(Exception):
    """Base class for all scenelink errors."""


class LookupFailure(SceneLinkError, KeyError):
    """An edge, object or decoration could not be found for a given id.

    Raised internally by the generator's edge lookups. Public mutators catch it,
    log a warning, and leave their state unchanged.
    """

    def __init__(self, kind: str, item_id: str | None, link_type: str | None = None) -> None:
        self.kind = kind
        self.item_id = item_id
        self.link_type = link_type
        where = f" in '{link_type}'" if link_type else ""
        super().__init__(f"No {kind} found for '{item_id}'{where}")

    def __str__(self) -> str:
        # KeyError would otherwise repr() the message
        return str(self.args[0])


class MalformedTemplate(SceneLinkError, ValueError):
    """A template references ids that have no properties or data scope."""


class TimingCycleError(SceneLinkError, ValueError):
    """Assigning a parent would create a cycle in the timing graph."""


class UnsupportedSequencingField(SceneLinkError, ValueError):
    """A field cannot drive peer sequencing (unknown type or no data)."""
