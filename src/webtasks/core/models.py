"""
Pydantic models for presets, page snapshots and agent exchanges.

Models that cross the wire (snapshot JSON, reasoning-service body) carry
camelCase aliases matching the JSON schema, while Python code uses
snake_case attributes. ``to_wire()`` always serializes by alias.
"""

from enum import Enum
from typing import Optional, Any, Dict, List, Union
from datetime import datetime
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class WireModel(BaseModel):
    """Base for models exchanged as JSON with the page or the service."""

    model_config = ConfigDict(populate_by_name=True)

    def to_wire(self) -> Dict[str, Any]:
        """Serialize using the JSON schema field names."""
        return self.model_dump(mode="json", by_alias=True)


# ===== Operation Presets =====

class OperationType(str, Enum):
    """Kinds of scripted page operations a preset can describe."""

    NAVIGATE = "navigate"
    CLICK = "click"
    TYPE = "type"
    EXTRACT_TEXT = "extractText"


class OperationPreset(BaseModel):
    """
    A user-defined page operation.

    ``selector`` is a CSS selector for click/type/extractText and ignored
    for navigate. ``value`` is the target URL for navigate and the text to
    enter for type.

    Example JSON:
    {
        "id": "2",
        "label": "Type into #q",
        "type": "type",
        "selector": "#q",
        "value": "hello"
    }
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(
        ...,
        min_length=1,
        description="Unique, stable preset identifier"
    )

    label: str = Field(
        default="",
        validate_default=True,
        description="Display name"
    )

    type: OperationType = Field(
        ...,
        description="Operation kind"
    )

    selector: str = Field(
        default="",
        description="CSS selector of the target element"
    )

    value: str = Field(
        default="",
        description="Navigation target or text to type"
    )

    @field_validator("selector", "value", mode="before")
    @classmethod
    def none_as_empty(cls, v: Any) -> Any:
        """Stored presets may carry null for unused fields."""
        return "" if v is None else v

    @field_validator("label")
    @classmethod
    def default_label(cls, v: str, info) -> str:
        v = v.strip()
        return v or f"Preset {info.data.get('id', '')}"

    @classmethod
    def from_json(cls, data: Dict[str, Any]) -> "OperationPreset":
        return cls.model_validate(data)

    def to_json(self) -> Dict[str, Any]:
        return self.model_dump(mode="json")


# ===== Page Snapshot =====

class ResourceReference(WireModel):
    """A resource-bearing attribute found in the page (img/src, a/href, ...)."""

    tag: str = Field(
        ...,
        description="Lower-cased tag name"
    )

    attribute: str = Field(
        ...,
        alias="attr",
        description="Attribute that holds the reference"
    )

    raw_value: str = Field(
        ...,
        alias="value",
        description="Attribute value as written in the markup"
    )

    absolute_url: str = Field(
        ...,
        alias="absolute",
        description="raw_value resolved against the base href (raw_value on failure)"
    )


class IframeSnapshot(WireModel):
    """An iframe and, when same-origin, its document markup."""

    src: str = Field(
        default="",
        description="src attribute as written"
    )

    absolute_url: str = Field(
        default="",
        alias="absolute",
        description="src resolved against the base href"
    )

    same_origin: bool = Field(
        default=False,
        alias="sameOrigin",
        description="Whether the inner document was readable"
    )

    html: str = Field(
        default="",
        description="Inner document markup; empty unless same_origin"
    )

    @model_validator(mode="after")
    def cross_origin_has_no_markup(self) -> "IframeSnapshot":
        if not self.same_origin and self.html:
            self.html = ""
        return self


class PageSnapshot(WireModel):
    """
    Self-contained capture of the current page.

    ``html`` is a full document that contains a ``<base href>`` so relative
    references resolve exactly as on the live page.
    """

    url: str = Field(
        ...,
        description="Current page URL"
    )

    origin: str = Field(
        default="",
        description="Scheme + host + port of the page"
    )

    path: str = Field(
        default="",
        description="URL path"
    )

    path_segments: List[str] = Field(
        default_factory=list,
        alias="pathSegments",
        description="Non-empty segments of path, in order"
    )

    base_href: str = Field(
        ...,
        alias="baseHref",
        description="Resolved base location of the document"
    )

    title: str = Field(
        default="",
        description="Document title"
    )

    html: str = Field(
        ...,
        description="Standalone document markup including shadow content"
    )

    resources: List[ResourceReference] = Field(
        default_factory=list,
        description="Referenced resources in document order"
    )

    iframes: List[IframeSnapshot] = Field(
        default_factory=list,
        description="Iframes in document order"
    )


class SnapshotError(WireModel):
    """Error variant of a snapshot."""

    error: str = Field(
        ...,
        description="Why the snapshot could not be captured"
    )


SnapshotResult = Union[PageSnapshot, SnapshotError]


def parse_snapshot(data: Dict[str, Any]) -> SnapshotResult:
    """Build the matching snapshot variant from its JSON form."""
    if "error" in data:
        return SnapshotError(error=str(data["error"]))
    return PageSnapshot.model_validate(data)


# ===== Element Resolution =====

STATUS_CLICKED_SELECTOR = "clicked:selector"
STATUS_CLICKED_ID = "clicked:id"
STATUS_CLICKED_MATCH = "clicked:match"
STATUS_CLICKED_HIDDEN = "clicked:hidden"
STATUS_NOT_FOUND = "not found"
STATUS_ERROR_PREFIX = "error:"


class ResolutionStrategy(str, Enum):
    """Resolver stages, in the order they are attempted."""

    SELECTOR = "selector"
    ID = "id"
    ATTRIBUTE = "attribute"
    LABEL_OR_VALUE = "label_or_value"
    EXACT_TEXT = "exact_text"
    PARTIAL_TEXT = "partial_text"
    LABEL_FOR = "label_for"


class ElementMatch(BaseModel):
    """The single element a resolution settled on."""

    strategy: ResolutionStrategy = Field(
        ...,
        description="Stage that produced the match"
    )

    visible: bool = Field(
        default=True,
        description="Element had non-zero rendered size at match time"
    )


class ResolutionResult(BaseModel):
    """
    Outcome of resolving a token against the page.

    ``status`` is one of the ``clicked:*`` strings, ``not found`` or
    ``error:<message>``.
    """

    status: str = Field(
        ...,
        description="Resolution status string"
    )

    match: Optional[ElementMatch] = Field(
        default=None,
        description="Matched element when status is clicked:*"
    )

    @property
    def clicked(self) -> bool:
        return self.status.startswith("clicked:")

    @property
    def failed(self) -> bool:
        return self.status.startswith(STATUS_ERROR_PREFIX)


# ===== Reasoning Service =====

class ReasoningRequest(WireModel):
    """Request body sent to the reasoning service."""

    user_prompt: str = Field(
        ...,
        alias="userPrompt"
    )

    previous_answer: str = Field(
        default="",
        alias="previousAnswer"
    )

    page_html: str = Field(
        default="",
        alias="pageHtml"
    )

    page_snapshot: Optional[Union[PageSnapshot, SnapshotError]] = Field(
        default=None,
        alias="pageSnapshot"
    )

    constant_prompt: str = Field(
        ...,
        alias="constantPrompt"
    )


class ReasoningResponse(BaseModel):
    """Successful reasoning-service response body."""

    model_config = ConfigDict(extra="ignore")

    answer: str = Field(
        ...,
        description="Narration text, or text containing an <element token>"
    )


# ===== Agent State =====

class ExchangeState(str, Enum):
    """States of the orchestration loop."""

    IDLE = "idle"
    AWAITING_SNAPSHOT = "awaiting_snapshot"
    AWAITING_RESPONSE = "awaiting_response"
    DISPATCHING = "dispatching"
    PRESENTING = "presenting"
    CLOSED = "closed"


class AgentExchange(BaseModel):
    """
    One request/response cycle of the orchestration loop.

    ``exchange_id`` increases with every accepted submission and decides
    which scheduled auto-close is still valid.
    """

    exchange_id: int = Field(
        ...,
        ge=1,
        description="Identity of this exchange within its orchestrator"
    )

    user_prompt: str = Field(
        ...,
        description="What the user typed"
    )

    previous_answer: str = Field(
        default="",
        description="Last narrated answer of the same session"
    )

    system_instruction: str = Field(
        ...,
        description="Fixed instruction sent as constantPrompt"
    )

    snapshot: Optional[SnapshotResult] = Field(
        default=None,
        description="Page state sent with the request; None without a surface"
    )

    answer: Optional[str] = Field(
        default=None,
        description="Service answer on success"
    )

    error: Optional[str] = Field(
        default=None,
        description="Visible error message on failure"
    )

    action: Optional[ResolutionResult] = Field(
        default=None,
        description="Resolver outcome when the answer carried an action token"
    )

    started_at: datetime = Field(
        default_factory=datetime.now,
        description="When the submission was accepted"
    )

    def to_request(self) -> ReasoningRequest:
        page_html = self.snapshot.html if isinstance(self.snapshot, PageSnapshot) else ""
        return ReasoningRequest(
            user_prompt=self.user_prompt,
            previous_answer=self.previous_answer,
            page_html=page_html,
            page_snapshot=self.snapshot,
            constant_prompt=self.system_instruction,
        )


class ActionResult(BaseModel):
    """
    Result of running a preset or loading a URL.
    """

    success: bool = Field(
        ...,
        description="Whether the operation succeeded"
    )

    message: str = Field(
        ...,
        description="Human-readable result message"
    )

    data: Optional[Dict[str, Any]] = Field(
        default=None,
        description="Additional result data (e.g. raw script result)"
    )

    error: Optional[str] = Field(
        default=None,
        description="Error message if success=False"
    )
