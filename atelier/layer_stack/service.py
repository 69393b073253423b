"""Ordered, mutable collection of design elements with selection state."""
from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Dict, Iterable, Iterator, List, Optional

from pydantic import BaseModel, ValidationError

from atelier.common.errors import (
    DuplicateIdentifier,
    ElementLocked,
    InvalidAttribute,
    NotFound,
    TypeMismatch,
)
from atelier.design_elements.models import (
    DesignElement,
    TextElement,
    field_lookup,
    union_field_names,
)

logger = logging.getLogger(__name__)

# Layer-panel toggles stay available on locked elements.
_LOCK_EXEMPT_FIELDS = {"locked", "visible"}
_LABEL_CHARS = 20


class MutationSource(str, Enum):
    PROGRAMMATIC = "programmatic"
    POINTER = "pointer"


class LayerEntry(BaseModel):
    """One row of the layer panel."""

    id: str
    type: str
    label: str
    z_index: int
    visible: bool
    locked: bool
    selected: bool


def _label_for(element: DesignElement) -> str:
    if isinstance(element, TextElement):
        return element.text[:_LABEL_CHARS]
    if element.type == "shape":
        return element.shape_type
    return "image"


class LayerStack:
    def __init__(self, elements: Optional[Iterable[DesignElement]] = None) -> None:
        self._elements: Dict[str, DesignElement] = {}
        self._selected_id: Optional[str] = None
        if elements is not None:
            self.replace_all(elements)

    def __len__(self) -> int:
        return len(self._elements)

    def __contains__(self, element_id: object) -> bool:
        return element_id in self._elements

    def __iter__(self) -> Iterator[DesignElement]:
        return iter(list(self._elements.values()))

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, LayerStack):
            return NotImplemented
        return self.elements() == other.elements()

    __hash__ = None  # type: ignore[assignment]

    @property
    def selected_id(self) -> Optional[str]:
        return self._selected_id

    def selected(self) -> Optional[DesignElement]:
        if self._selected_id is None:
            return None
        return self._elements.get(self._selected_id)

    def get(self, element_id: str) -> DesignElement:
        try:
            return self._elements[element_id]
        except KeyError:
            raise NotFound("element", element_id)

    def elements(self) -> List[DesignElement]:
        """Elements in insertion order."""
        return list(self._elements.values())

    def paint_order(self) -> List[DesignElement]:
        """Visible elements bottom to top: z-index, ties by insertion order."""
        visible = [el for el in self._elements.values() if el.visible]
        return sorted(visible, key=lambda el: el.z_index)

    def layers_for_display(self) -> List[LayerEntry]:
        ordered = sorted(self._elements.values(), key=lambda el: el.z_index)
        return [
            LayerEntry(
                id=el.id,
                type=el.type,
                label=_label_for(el),
                z_index=el.z_index,
                visible=el.visible,
                locked=el.locked,
                selected=el.id == self._selected_id,
            )
            for el in reversed(ordered)
        ]

    def add(self, element: DesignElement) -> DesignElement:
        if element.id in self._elements:
            raise DuplicateIdentifier(element.id)
        self._elements[element.id] = element
        self._selected_id = element.id
        logger.debug("Added %s element %s", element.type, element.id)
        return element

    def update(
        self,
        element_id: str,
        attrs: Dict[str, Any],
        source: MutationSource = MutationSource.PROGRAMMATIC,
    ) -> DesignElement:
        """Merge ``attrs`` into one element, all-or-nothing.

        Keys may use either the Python or the wire spelling. Attributes owned
        by a different element variant raise TypeMismatch; values failing
        validation raise InvalidAttribute. Pointer-driven edits of a locked
        element raise ElementLocked unless they only flip ``locked`` or
        ``visible``.
        """
        current = self.get(element_id)
        lookup = field_lookup(type(current))

        changes: Dict[str, Any] = {}
        foreign: List[str] = []
        unknown: List[str] = []
        for key, value in attrs.items():
            name = lookup.get(key)
            if name is None:
                if key in union_field_names():
                    foreign.append(key)
                else:
                    unknown.append(key)
                continue
            if name == "type":
                if value != current.type:
                    foreign.append(key)
                continue
            if name == "id":
                if value != current.id:
                    raise InvalidAttribute(
                        "Element ids cannot be changed",
                        details={"element_id": element_id, "new_id": value},
                    )
                continue
            changes[name] = value

        if source == MutationSource.POINTER and current.locked:
            if set(changes) - _LOCK_EXEMPT_FIELDS or foreign or unknown:
                raise ElementLocked(element_id)
        if foreign:
            raise TypeMismatch(element_id, current.type, foreign)
        if unknown:
            raise InvalidAttribute(
                f"Unknown attributes {sorted(unknown)}",
                details={"element_id": element_id, "fields": sorted(unknown)},
            )
        if not changes:
            return current

        merged = current.model_dump()
        merged.update(changes)
        try:
            updated = type(current).model_validate(merged)
        except ValidationError as exc:
            raise InvalidAttribute(
                f"Invalid attribute values for element {element_id!r}",
                details={
                    "element_id": element_id,
                    "errors": [
                        {"loc": [str(p) for p in err["loc"]], "msg": err["msg"]}
                        for err in exc.errors()
                    ],
                },
            )
        self._elements[element_id] = updated
        return updated

    def remove(self, element_id: str) -> None:
        if self._elements.pop(element_id, None) is None:
            return
        if self._selected_id == element_id:
            self._selected_id = None
        logger.debug("Removed element %s", element_id)

    def reorder_to_top(self, element_id: str) -> DesignElement:
        current = self.get(element_id)
        others = [el.z_index for el in self._elements.values() if el.id != element_id]
        if not others or current.z_index > max(others):
            return current
        return self._set_z(current, max(others) + 1)

    def reorder_to_bottom(self, element_id: str) -> DesignElement:
        current = self.get(element_id)
        others = [el.z_index for el in self._elements.values() if el.id != element_id]
        if not others or current.z_index < min(others):
            return current
        return self._set_z(current, min(others) - 1)

    def _set_z(self, element: DesignElement, z_index: int) -> DesignElement:
        updated = element.model_copy(update={"z_index": z_index})
        self._elements[element.id] = updated
        return updated

    def set_selection(self, element_id: Optional[str]) -> None:
        if element_id is not None and element_id not in self._elements:
            element_id = None
        self._selected_id = element_id

    def clear(self) -> None:
        self._elements.clear()
        self._selected_id = None

    def replace_all(self, elements: Iterable[DesignElement]) -> None:
        """Swap in a loaded element list, keeping the given order."""
        incoming: Dict[str, DesignElement] = {}
        for el in elements:
            if el.id in incoming:
                raise DuplicateIdentifier(el.id)
            incoming[el.id] = el
        self._elements = incoming
        self._selected_id = None


__all__ = ["LayerStack", "LayerEntry", "MutationSource"]
