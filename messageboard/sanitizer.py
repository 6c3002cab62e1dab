"""
Public projection of thread records.
"""

from __future__ import annotations

from messageboard.db import ReplyRecord, ThreadRecord
from messageboard.schemas import PublicReply, PublicThread

REPLY_PREVIEW_LIMIT = 3


def _public_reply(reply: ReplyRecord) -> PublicReply:
    return PublicReply(id=reply.reply_id, text=reply.text, created_on=reply.created_on)


def project_thread(thread: ThreadRecord, full_replies: bool) -> PublicThread:
    """
    Build the reader-facing view of a thread.

    ``reported`` and ``delete_password`` are dropped from the thread and every
    reply. With ``full_replies`` all replies are kept in chronological order;
    otherwise only the newest few are kept, newest first. ``replycount`` is
    always the full count.
    """
    replies = [_public_reply(reply) for reply in thread.replies]
    if not full_replies:
        replies = replies[-REPLY_PREVIEW_LIMIT:][::-1]
    return PublicThread(
        id=thread.thread_id,
        text=thread.text,
        created_on=thread.created_on,
        bumped_on=thread.bumped_on,
        replies=replies,
        replycount=len(thread.replies),
    )
