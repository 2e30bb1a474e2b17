from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Literal, Mapping, Optional, Sequence

from pydantic import BaseModel, ConfigDict, Field, SecretStr, ValidationInfo, field_validator

from .options import AccountRole


def safe_suffix(value: str, n: int = 6) -> str:
    if len(value) <= n:
        return value
    return value[-n:]


class Credential(BaseModel):
    model_config = ConfigDict(frozen=True)

    role: AccountRole
    token: SecretStr
    username: Optional[str] = None

    @field_validator("token")
    @classmethod
    def _non_empty_token(cls, v: SecretStr) -> SecretStr:
        if not v.get_secret_value().strip():
            raise ValueError("token cannot be empty")
        return v

    @property
    def bearer(self) -> str:
        return self.token.get_secret_value()

    @property
    def masked(self) -> str:
        return f"...{safe_suffix(self.bearer)}"

    def with_username(self, username: str) -> "Credential":
        return self.model_copy(update={"username": username})


@dataclass
class AccountAuthState:
    """Verification state of one account role for a single migration call."""

    role: AccountRole
    credential: Credential
    verified: bool = False
    username: Optional[str] = None

    def mark_verified(self, username: str) -> None:
        self.verified = True
        self.username = username
        self.credential = self.credential.with_username(username)


@dataclass
class ItemPage:
    """
    One listing page. `items` holds fullnames or detail records; `size` is the
    number of children Reddit returned, including ones that could not be read.
    """

    items: List[Any]
    after: Optional[str] = None
    size: Optional[int] = None

    def __post_init__(self) -> None:
        if self.size is None:
            self.size = len(self.items)

    @property
    def exhausted(self) -> bool:
        return not self.after


_PLACEHOLDER_THUMBNAILS = {"", "self", "default", "nsfw", "spoiler", "image"}


def _text(data: Mapping[str, Any], key: str) -> str:
    value = data.get(key)
    return value if isinstance(value, str) else ""


def _number(data: Mapping[str, Any], key: str) -> int:
    value = data.get(key)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return 0
    return int(value)


class SubredditInfo(BaseModel):
    """Readable subreddit record for picking a custom selection."""

    name: str
    display_name: str = ""
    title: str = ""
    public_description: str = ""
    subscribers: int = 0
    icon_img: str = ""
    subreddit_type: str = ""
    over18: bool = False
    created_utc: int = 0

    @classmethod
    def from_listing(cls, data: Mapping[str, Any]) -> "SubredditInfo":
        return cls(
            name=_text(data, "name"),
            display_name=_text(data, "display_name"),
            title=_text(data, "title"),
            public_description=_text(data, "public_description"),
            subscribers=_number(data, "subscribers"),
            icon_img=_text(data, "icon_img") or _text(data, "community_icon").split("?")[0],
            subreddit_type=_text(data, "subreddit_type"),
            over18=bool(data.get("over18")),
            created_utc=_number(data, "created_utc"),
        )


class SavedPostInfo(BaseModel):
    """Readable saved post or comment record."""

    full_name: str
    id: str = ""
    kind: Literal["post", "comment"] = "post"
    title: str = ""
    subreddit: str = ""
    author: str = ""
    url: str = ""
    permalink: str = ""
    score: int = 0
    num_comments: int = 0
    created_utc: int = 0
    is_self: bool = False
    over_18: bool = False
    thumbnail: str = ""

    @classmethod
    def from_listing(cls, data: Mapping[str, Any]) -> "SavedPostInfo":
        full_name = _text(data, "name")
        is_comment = full_name.startswith("t1_")
        permalink = _text(data, "permalink")
        thumbnail = _text(data, "thumbnail")
        return cls(
            full_name=full_name,
            id=_text(data, "id"),
            kind="comment" if is_comment else "post",
            # saved comments carry the parent post title as link_title
            title=_text(data, "link_title" if is_comment else "title"),
            subreddit=_text(data, "subreddit"),
            author=_text(data, "author"),
            url=_text(data, "link_url" if is_comment else "url"),
            permalink=f"https://reddit.com{permalink}" if permalink.startswith("/") else permalink,
            score=_number(data, "score"),
            num_comments=_number(data, "num_comments"),
            created_utc=_number(data, "created_utc"),
            is_self=bool(data.get("is_self")),
            over_18=bool(data.get("over_18")),
            thumbnail="" if thumbnail in _PLACEHOLDER_THUMBNAILS else thumbnail,
        )


class SelectionMode(str, Enum):
    ALL = "all"
    CUSTOM = "custom"
    NONE = "none"


class SelectionSet(BaseModel):
    model_config = ConfigDict(frozen=True)

    mode: SelectionMode = SelectionMode.NONE
    items: List[str] = Field(default_factory=list)

    @field_validator("items")
    @classmethod
    def _items_only_for_custom(cls, v: List[str], info: ValidationInfo) -> List[str]:
        mode = info.data.get("mode")
        if mode != SelectionMode.CUSTOM and v:
            raise ValueError("items are only allowed for a custom selection")
        return [i.strip() for i in v if i and i.strip()]

    @classmethod
    def all(cls) -> "SelectionSet":
        return cls(mode=SelectionMode.ALL)

    @classmethod
    def none(cls) -> "SelectionSet":
        return cls(mode=SelectionMode.NONE)

    @classmethod
    def custom(cls, items: Sequence[str]) -> "SelectionSet":
        return cls(mode=SelectionMode.CUSTOM, items=list(items))

    @property
    def is_none(self) -> bool:
        return self.mode == SelectionMode.NONE


class DeleteFromSource(BaseModel):
    model_config = ConfigDict(frozen=True)

    subreddits: bool = False
    posts: bool = False


class MigrationRequest(BaseModel):
    model_config = ConfigDict(frozen=True)

    source: Credential
    destination: Credential
    subreddit_selection: SelectionSet = Field(default_factory=SelectionSet.none)
    post_selection: SelectionSet = Field(default_factory=SelectionSet.none)
    delete_from_source: DeleteFromSource = Field(default_factory=DeleteFromSource)

    @field_validator("source")
    @classmethod
    def _source_role(cls, v: Credential) -> Credential:
        if v.role != AccountRole.SOURCE:
            raise ValueError("source credential must carry the source role")
        return v

    @field_validator("destination")
    @classmethod
    def _destination_role(cls, v: Credential) -> Credential:
        if v.role != AccountRole.DESTINATION:
            raise ValueError("destination credential must carry the destination role")
        return v


class CustomMigrationRequest(BaseModel):
    """Explicit id lists instead of all/none flags; an empty list skips that kind."""

    model_config = ConfigDict(frozen=True)

    source: Credential
    destination: Credential
    selected_subreddits: List[str] = Field(default_factory=list)
    selected_posts: List[str] = Field(default_factory=list)
    delete_old_subreddits: bool = False
    delete_old_posts: bool = False

    def to_migration_request(self) -> MigrationRequest:
        def _selection(items: List[str]) -> SelectionSet:
            cleaned = [i.strip() for i in items if i and i.strip()]
            return SelectionSet.custom(cleaned) if cleaned else SelectionSet.none()

        return MigrationRequest(
            source=self.source,
            destination=self.destination,
            subreddit_selection=_selection(self.selected_subreddits),
            post_selection=_selection(self.selected_posts),
            delete_from_source=DeleteFromSource(
                subreddits=self.delete_old_subreddits,
                posts=self.delete_old_posts,
            ),
        )


class OutcomeReport(BaseModel):
    success_count: int = 0
    failed_count: int = 0
    failed_items: List[str] = Field(default_factory=list)

    def record_success(self, items: Sequence[str]) -> None:
        self.success_count += len(items)

    def record_failure(self, items: Sequence[str]) -> None:
        self.failed_count += len(items)
        self.failed_items.extend(items)

    @property
    def attempted(self) -> int:
        return self.success_count + self.failed_count


class MigrationResult(BaseModel):
    subscribe_subreddit: Optional[OutcomeReport] = None
    unsubscribe_subreddit: Optional[OutcomeReport] = None
    save_post: Optional[OutcomeReport] = None
    unsave_post: Optional[OutcomeReport] = None
    # stage name -> human readable message
    errors: Dict[str, str] = Field(default_factory=dict)
    success: bool = False
    message: str = ""

    @property
    def reports(self) -> Dict[str, OutcomeReport]:
        out: Dict[str, OutcomeReport] = {}
        for name in ("subscribe_subreddit", "unsubscribe_subreddit", "save_post", "unsave_post"):
            report = getattr(self, name)
            if report is not None:
                out[name] = report
        return out

    def finalize(self) -> "MigrationResult":
        failed = any(r.failed_count for r in self.reports.values())
        if self.errors:
            self.success = False
            self.message = "Migration finished with errors: " + "; ".join(
                f"{stage}: {msg}" for stage, msg in self.errors.items()
            )
        elif failed:
            self.success = False
            self.message = "Migration completed with some errors. Check individual operation statuses."
        else:
            self.success = True
            self.message = "Migration completed successfully."
        return self

    def to_response(self) -> Dict[str, object]:
        return self.model_dump(exclude_none=True)
