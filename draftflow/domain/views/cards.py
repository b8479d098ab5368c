"""Card builders. Every function is a pure function of its arguments."""

from typing import List, Optional

from draftflow.domain.errors import InvariantViolation
from draftflow.domain.models.events import (
    BackToDirection, ConfirmOutline, RegenerateOutline, RegenerateTopics,
    SelectDirection, SelectTopic, StartOver
)
from draftflow.domain.models.session import Session, WorkflowState
from draftflow.domain.models.view import Button, ButtonStyle, View, ViewKind

DIRECTIONS = ["职场成长", "求职面试", "行业洞察", "个人品牌"]


def direction_view(session: Session) -> View:
    """Step 1: pick a direction"""
    return View(
        kind=ViewKind.DIRECTION,
        title="✍️ 开始创作——选一个方向",
        template="blue",
        button_rows=[[
            Button(
                label=direction,
                style=ButtonStyle.PRIMARY,
                payload=SelectDirection(direction=direction, version=session.version),
            )
            for direction in DIRECTIONS
        ]],
    )


def topic_view(session: Session) -> View:
    """Step 2: pick one of the topic candidates or regenerate"""
    rows: List[List[Button]] = [
        [Button(
            label=f"{i + 1}. {topic}",
            payload=SelectTopic(topic=topic, version=session.version),
        )]
        for i, topic in enumerate(session.topic_candidates)
    ]
    rows.append([
        Button(label="🔄 换一批", style=ButtonStyle.DANGER, payload=RegenerateTopics(version=session.version)),
        Button(label="↺ 重新开始", payload=StartOver(version=session.version)),
    ])
    return View(
        kind=ViewKind.TOPIC,
        title=f"📝 选题 · {session.direction}",
        template="green",
        blocks=["选一个选题继续，或换一批："],
        button_rows=rows,
    )


def outline_view(session: Session) -> View:
    """Step 3: confirm, regenerate or abandon the outline"""
    return View(
        kind=ViewKind.OUTLINE,
        title="📋 确认大纲",
        template="yellow",
        blocks=[f"**选题：**{session.selected_topic}\n\n{session.outline}"],
        button_rows=[[
            Button(label="✅ 确认，开始写作", style=ButtonStyle.PRIMARY, payload=ConfirmOutline(version=session.version)),
            Button(label="🔄 重新生成大纲", payload=RegenerateOutline(version=session.version)),
            Button(label="← 重新选题", style=ButtonStyle.DANGER, payload=BackToDirection(version=session.version)),
        ]],
    )


def done_view(session: Session) -> View:
    """Step 4: article written, link to the document"""
    return View(
        kind=ViewKind.DONE,
        title="✅ 文章已生成",
        template="green",
        blocks=[f"**{session.selected_topic}**\n\n{session.article_preview or ''}"],
        button_rows=[[
            Button(label="📄 查看完整文章", style=ButtonStyle.PRIMARY, url=session.document_link),
            Button(label="✍️ 再写一篇", payload=StartOver(version=session.version)),
        ]],
    )


def progress_view(message: str) -> View:
    """Placeholder shown while a transition runs"""
    return View(kind=ViewKind.PROGRESS, blocks=[f"⏳ {message}"])


def ignored_view(reason: str) -> View:
    """Acknowledgment for an action that will not be executed"""
    return View(kind=ViewKind.IGNORED, blocks=[f"ℹ️ {reason}"])


def error_view(message: str) -> View:
    """Standalone error card"""
    return View(kind=ViewKind.ERROR, title="❌ 出错了", template="red", blocks=[message])


def view_for_session(session: Session, notice: Optional[str] = None) -> View:
    """The card matching the session's current state"""

    if session.state == WorkflowState.DIRECTION:
        view = direction_view(session)
    elif session.state == WorkflowState.TOPIC:
        view = topic_view(session)
    elif session.state == WorkflowState.OUTLINE:
        view = outline_view(session)
    elif session.state == WorkflowState.DONE:
        view = done_view(session)
    elif session.state == WorkflowState.WRITING:
        view = progress_view(f"正在写作「{session.selected_topic}」...")
    else:
        raise InvariantViolation(f"no view for state {session.state!r}")

    if notice:
        view = view.with_notice(f"❌ {notice}")
    return view


def preview_of(article: str, limit: int = 150) -> str:
    """First two paragraphs of an article, cut to limit characters"""
    paragraphs = [p for p in article.split("\n\n") if p.strip()]
    return "\n".join(paragraphs[:2])[:limit] + "..."
