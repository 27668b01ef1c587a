"""Direct messages between users.

Messages are immutable apart from the read flag, which only the receiver
may set.
"""

import logging
from typing import Dict, List, Optional, Any
from uuid import UUID

from auth import Identity
from database import get_pool
from errors import ValidationError, NotFound, Forbidden

logger = logging.getLogger(__name__)

HISTORY_LIMIT = 100


def _project(row) -> Dict[str, Any]:
    return {
        'id': row['id'],
        'sender': {'id': row['sender_id'], 'name': row['sender_name']},
        'receiver': {'id': row['receiver_id'], 'name': row['receiver_name']},
        'text': row['text'],
        'read': row['read'],
        'created_at': row['created_at']
    }


class MessageManager:
    """Sends, lists and summarizes direct messages."""

    def __init__(self, pool=None):
        self.pool = pool

    async def ensure_pool(self):
        """Ensure we have a database pool."""
        if not self.pool:
            self.pool = await get_pool()

    async def send(self, identity: Identity, receiver_id: UUID, text: str) -> Dict[str, Any]:
        """Send a message to another user.

        Raises:
            ValidationError: If the text is blank
            NotFound: If the receiver doesn't exist
        """
        text = (text or '').strip()
        if not text:
            raise ValidationError("Message text is required")

        await self.ensure_pool()

        async with self.pool.acquire() as conn:
            receiver_name = await conn.fetchval(
                'SELECT name FROM users WHERE id = $1',
                receiver_id
            )
            if receiver_name is None:
                raise NotFound("Receiver not found")

            row = await conn.fetchrow(
                '''
                INSERT INTO messages (sender_id, receiver_id, text)
                VALUES ($1, $2, $3)
                RETURNING id, sender_id, receiver_id, text, read, created_at
                ''',
                identity.id,
                receiver_id,
                text
            )

        message = dict(row)
        message['sender_name'] = identity.name
        message['receiver_name'] = receiver_name
        logger.debug(f"Message {row['id']} from {identity.id} to {receiver_id}")
        return _project(message)

    async def list(self, identity: Identity, with_user: Optional[UUID] = None) -> List[Dict[str, Any]]:
        """The caller's latest messages, oldest first.

        Args:
            identity: Caller
            with_user: Restrict to the conversation with this user
        """
        await self.ensure_pool()

        if with_user is None:
            where = 'm.sender_id = $1 OR m.receiver_id = $1'
            params = [identity.id]
        else:
            where = '''
                (m.sender_id = $1 AND m.receiver_id = $2)
                OR (m.sender_id = $2 AND m.receiver_id = $1)
            '''
            params = [identity.id, with_user]

        async with self.pool.acquire() as conn:
            rows = await conn.fetch(
                f'''
                SELECT * FROM (
                    SELECT m.id, m.sender_id, m.receiver_id, m.text, m.read, m.created_at,
                           s.name AS sender_name, r.name AS receiver_name
                    FROM messages m
                    JOIN users s ON s.id = m.sender_id
                    JOIN users r ON r.id = m.receiver_id
                    WHERE {where}
                    ORDER BY m.created_at DESC
                    LIMIT {HISTORY_LIMIT}
                ) latest
                ORDER BY created_at ASC
                ''',
                *params
            )

        return [_project(row) for row in rows]

    async def conversations(self, identity: Identity) -> List[Dict[str, Any]]:
        """One summary per counterpart, most recent conversation first.

        Each summary carries the latest message text, time and sender, whether
        the caller sent it, and how many messages to the caller are unread.
        Messages a user sent to themselves are left out.
        """
        await self.ensure_pool()

        async with self.pool.acquire() as conn:
            rows = await conn.fetch(
                '''
                WITH mine AS (
                    SELECT m.*,
                           CASE WHEN m.sender_id = $1 THEN m.receiver_id ELSE m.sender_id END AS other_id
                    FROM messages m
                    WHERE (m.sender_id = $1 OR m.receiver_id = $1)
                      AND m.sender_id <> m.receiver_id
                ),
                latest AS (
                    SELECT DISTINCT ON (other_id)
                           other_id, text, created_at, sender_id
                    FROM mine
                    ORDER BY other_id, created_at DESC
                ),
                unread AS (
                    SELECT other_id, COUNT(*) AS unread_count
                    FROM mine
                    WHERE receiver_id = $1 AND NOT read
                    GROUP BY other_id
                )
                SELECT u.id AS user_id, u.name AS user_name, u.email AS user_email,
                       l.text AS last_message, l.created_at AS last_message_date,
                       l.sender_id AS last_sender_id,
                       COALESCE(n.unread_count, 0) AS unread_count
                FROM latest l
                JOIN users u ON u.id = l.other_id
                LEFT JOIN unread n ON n.other_id = l.other_id
                ORDER BY l.created_at DESC
                ''',
                identity.id
            )

        return [
            {
                'user_id': row['user_id'],
                'user_name': row['user_name'],
                'user_email': row['user_email'],
                'last_message': row['last_message'],
                'last_message_date': row['last_message_date'],
                'last_sender_id': row['last_sender_id'],
                'is_last_message_from_me': row['last_sender_id'] == identity.id,
                'unread_count': row['unread_count']
            }
            for row in rows
        ]

    async def mark_read(self, identity: Identity, message_id: UUID) -> None:
        """Flag a message as read; only its receiver may."""
        await self.ensure_pool()

        async with self.pool.acquire() as conn:
            receiver_id = await conn.fetchval(
                'SELECT receiver_id FROM messages WHERE id = $1',
                message_id
            )
            if receiver_id is None:
                raise NotFound("Message not found")
            if receiver_id != identity.id:
                raise Forbidden("Not authorized")

            await conn.execute('UPDATE messages SET read = true WHERE id = $1', message_id)


__all__ = ['MessageManager', 'HISTORY_LIMIT']
