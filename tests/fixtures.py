"""Database fixtures for prunetree tests (shared)."""

import pytest
from sqlalchemy.orm import Session

from .models import User, Entry, BodyBlock, ImageBlock, QuoteBlock, Comment


def create_sample_users(session: Session):
    users = [
        User(username="alice", email="alice@example.com", ssn="111-11-1111"),
        User(username="bob", email="bob@example.com", ssn="222-22-2222"),
    ]
    session.add_all(users)
    session.flush()
    return users


def create_sample_entries(session: Session, users):
    alice, bob = users
    entries = [
        Entry(
            title="First Entry",
            body="Hello world!",
            hidden="secret one",
            author_id=alice.id,
            metadata_json={"tags": ["intro", "hello"], "views": 10},
        ),
        Entry(
            title="Second Entry",
            body="More words",
            hidden="secret two",
            author_id=bob.id,
            metadata_json=None,
        ),
    ]
    session.add_all(entries)
    session.flush()
    return entries


def create_sample_blocks(session: Session, entries):
    first = entries[0]
    blocks = [
        BodyBlock(entry_id=first.id, position=1, text="x"),
        ImageBlock(entry_id=first.id, position=2, src="y.png"),
        QuoteBlock(entry_id=first.id, position=3, text="to be"),
        BodyBlock(entry_id=first.id, position=4, text="z"),
    ]
    session.add_all(blocks)
    session.flush()
    return blocks


def create_sample_comments(session: Session, users, entries):
    alice, bob = users
    first, second = entries
    comments = [
        Comment(entry_id=first.id, author_id=bob.id if i % 2 else alice.id, body=f"comment {i}", rating=i)
        for i in range(1, 11)
    ]
    comments += [
        Comment(entry_id=second.id, author_id=alice.id, body="nice", rating=3),
        Comment(entry_id=second.id, author_id=alice.id, body="great", rating=5),
    ]
    session.add_all(comments)
    session.flush()
    return comments


@pytest.fixture(scope="function")
def sample_users(db_session: Session):
    return create_sample_users(db_session)


@pytest.fixture(scope="function")
def populated_db(db_session: Session):
    users = create_sample_users(db_session)
    entries = create_sample_entries(db_session, users)
    blocks = create_sample_blocks(db_session, entries)
    comments = create_sample_comments(db_session, users, entries)
    db_session.commit()
    return {
        'users': users,
        'entries': entries,
        'blocks': blocks,
        'comments': comments,
    }
