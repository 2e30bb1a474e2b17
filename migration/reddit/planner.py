from __future__ import annotations

from typing import List, Literal, Union

from pydantic import BaseModel, Field

from .models import MigrationRequest, SelectionSet
from .options import AccountRole, ListingKind, PostAction, SubredditAction


# Stage types for execution ------------------------------------------------------


class SubredditStage(BaseModel):
    report: Literal["subscribe_subreddit", "unsubscribe_subreddit"]
    action: SubredditAction
    role: AccountRole


class PostStage(BaseModel):
    report: Literal["save_post", "unsave_post"]
    action: PostAction
    role: AccountRole


Stage = Union[SubredditStage, PostStage]


class KindPlan(BaseModel):
    kind: ListingKind
    selection: SelectionSet
    stages: List[Stage] = Field(default_factory=list)


class MigrationPlan(BaseModel):
    subreddits: KindPlan
    posts: KindPlan

    @property
    def kinds(self) -> List[KindPlan]:
        return [self.subreddits, self.posts]


# Planner API ------------------------------------------------------------------


def build_plan(request: MigrationRequest) -> MigrationPlan:
    """
    Turn a request into the ordered write stages per content kind. A kind whose
    selection is none gets no stages at all. Writes to the destination always
    come before cleanup on the source.
    """
    subreddits = KindPlan(kind=ListingKind.SUBREDDITS, selection=request.subreddit_selection)
    if not request.subreddit_selection.is_none:
        subreddits.stages.append(
            SubredditStage(report="subscribe_subreddit", action=SubredditAction.SUBSCRIBE, role=AccountRole.DESTINATION)
        )
        if request.delete_from_source.subreddits:
            subreddits.stages.append(
                SubredditStage(report="unsubscribe_subreddit", action=SubredditAction.UNSUBSCRIBE, role=AccountRole.SOURCE)
            )

    posts = KindPlan(kind=ListingKind.SAVED, selection=request.post_selection)
    if not request.post_selection.is_none:
        posts.stages.append(PostStage(report="save_post", action=PostAction.SAVE, role=AccountRole.DESTINATION))
        if request.delete_from_source.posts:
            posts.stages.append(PostStage(report="unsave_post", action=PostAction.UNSAVE, role=AccountRole.SOURCE))

    return MigrationPlan(subreddits=subreddits, posts=posts)


def expand_to_stages(plan: MigrationPlan) -> List[Stage]:
    """
    Return every write stage in execution order.
    """
    return [stage for kp in plan.kinds for stage in kp.stages]
