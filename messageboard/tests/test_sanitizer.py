import unittest
from datetime import datetime, timedelta, timezone

from messageboard.db import ReplyRecord, ThreadRecord
from messageboard.sanitizer import project_thread


def _thread_with_replies(count):
    start = datetime(2024, 1, 1, tzinfo=timezone.utc)
    thread = ThreadRecord(
        board="b", text="t", delete_password="secret", created_on=start, reported=True
    )
    for i in range(count):
        thread.replies.append(
            ReplyRecord(
                text=f"reply {i}",
                delete_password="rsecret",
                created_on=start + timedelta(minutes=i + 1),
                reported=True,
            )
        )
    return thread


class ProjectThreadTests(unittest.TestCase):
    def test_private_fields_are_dropped(self):
        public = project_thread(_thread_with_replies(2), full_replies=True)
        payload = public.model_dump(by_alias=True)

        self.assertEqual(
            set(payload),
            {"_id", "text", "created_on", "bumped_on", "replies", "replycount"},
        )
        for reply in payload["replies"]:
            self.assertEqual(set(reply), {"_id", "text", "created_on"})

    def test_truncated_view_keeps_three_newest_first(self):
        thread = _thread_with_replies(5)
        public = project_thread(thread, full_replies=False)

        self.assertEqual(public.replycount, 5)
        self.assertEqual(
            [reply.text for reply in public.replies], ["reply 4", "reply 3", "reply 2"]
        )

    def test_truncated_view_with_few_replies(self):
        public = project_thread(_thread_with_replies(2), full_replies=False)
        self.assertEqual([reply.text for reply in public.replies], ["reply 1", "reply 0"])
        self.assertEqual(public.replycount, 2)

    def test_full_view_keeps_chronological_order(self):
        thread = _thread_with_replies(5)
        public = project_thread(thread, full_replies=True)

        self.assertEqual(public.replycount, 5)
        self.assertEqual(
            [reply.text for reply in public.replies], [f"reply {i}" for i in range(5)]
        )
        self.assertEqual(public.replies[0].id, thread.replies[0].reply_id)

    def test_projection_does_not_touch_record(self):
        thread = _thread_with_replies(4)
        project_thread(thread, full_replies=False)
        self.assertEqual(len(thread.replies), 4)
        self.assertEqual(thread.replies[0].text, "reply 0")


if __name__ == "__main__":
    unittest.main()
