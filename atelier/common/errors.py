"""Error taxonomy for the design-composition engines.

Each error carries a machine-readable ``code`` and the HTTP status the
service layer maps it to. Element-local failures (decode, type mismatch) are
isolated by their callers; viewport and persistence failures degrade
gracefully instead of aborting an editor session.
"""
from __future__ import annotations

from typing import Any, Dict, Optional


class AtelierError(Exception):
    """Base error for all atelier engines."""

    code: str = "atelier.error"
    http_status: int = 400
    resource_kind: Optional[str] = None

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class NotFound(AtelierError):
    """Raised when an operation references an id that does not exist."""

    code = "atelier.not_found"
    http_status = 404

    def __init__(self, resource_kind: str, resource_id: str):
        super().__init__(
            f"{resource_kind} {resource_id!r} not found",
            details={"resource_id": resource_id},
        )
        self.resource_kind = resource_kind
        self.resource_id = resource_id


class DuplicateIdentifier(AtelierError):
    """Raised when an element id collides with one already in the stack."""

    code = "layer_stack.duplicate_identifier"
    http_status = 409
    resource_kind = "element"

    def __init__(self, element_id: str):
        super().__init__(
            f"Element id {element_id!r} already exists",
            details={"element_id": element_id},
        )
        self.element_id = element_id


class TypeMismatch(AtelierError):
    """Raised when attributes do not belong to the element's variant."""

    code = "layer_stack.type_mismatch"
    http_status = 422
    resource_kind = "element"

    def __init__(self, element_id: str, element_type: str, fields: list[str]):
        super().__init__(
            f"Fields {sorted(fields)} are not valid for {element_type} element {element_id!r}",
            details={"element_id": element_id, "element_type": element_type, "fields": sorted(fields)},
        )
        self.element_id = element_id
        self.element_type = element_type
        self.fields = sorted(fields)


class InvalidAttribute(AtelierError):
    """Raised when an attribute value fails validation."""

    code = "layer_stack.invalid_attribute"
    http_status = 422
    resource_kind = "element"


class ElementLocked(AtelierError):
    """Raised when pointer interaction targets a locked element."""

    code = "layer_stack.element_locked"
    http_status = 423
    resource_kind = "element"

    def __init__(self, element_id: str):
        super().__init__(f"Element {element_id!r} is locked", details={"element_id": element_id})
        self.element_id = element_id


class InvalidUpload(AtelierError):
    """Raised when an uploaded image is rejected before it becomes an element."""

    code = "design_elements.invalid_upload"
    http_status = 400
    resource_kind = "upload"


class DecodeFailure(AtelierError):
    """Raised when an image payload cannot be rasterized."""

    code = "compositor.decode_failure"
    http_status = 422
    resource_kind = "image"


class MeshLoadFailure(AtelierError):
    """Raised when a product model cannot be loaded into the viewport."""

    code = "viewport.mesh_load_failure"
    http_status = 502
    resource_kind = "mesh"


class InvalidViewportState(AtelierError):
    """Raised on a lifecycle transition the viewport does not allow."""

    code = "viewport.invalid_state"
    http_status = 409
    resource_kind = "viewport"


class PersistenceFailure(AtelierError):
    """Raised when the persistence adapter cannot save or load a design."""

    code = "persistence.failure"
    http_status = 503
    resource_kind = "design"
