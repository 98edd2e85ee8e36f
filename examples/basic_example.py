"""
Basic example of pruning SQLAlchemy records with prunetree.

This example demonstrates:
- Selecting fields and nested relations with a prune definition
- Directives on lazy (dynamic) relationships
- Type dispatch on polymorphic content blocks
- Memoization with tag-based invalidation
- Exposing pruned data through a Strawberry field
"""

import json
import logging

import strawberry
from sqlalchemy import Column, ForeignKey, Integer, String, create_engine
from sqlalchemy.orm import DeclarativeBase, Session, relationship

from prunetree import MemoryCache, Pruner
from prunetree.adapters.sqlalchemy import SQLAlchemyAdapter
from prunetree.graphql import pruned_field


# SQLAlchemy Models
class Base(DeclarativeBase):
    pass


class User(Base):
    __tablename__ = 'users'

    id = Column(Integer, primary_key=True)
    name = Column(String(100), nullable=False)
    email = Column(String(255), unique=True, nullable=False)

    posts = relationship("Post", back_populates="author")


class Post(Base):
    __tablename__ = 'posts'

    id = Column(Integer, primary_key=True)
    title = Column(String(200), nullable=False)
    author_id = Column(Integer, ForeignKey('users.id'), nullable=False)

    author = relationship("User", back_populates="posts")
    blocks = relationship("Block", order_by="Block.position")
    comments = relationship("Comment", lazy="dynamic", order_by="Comment.id")


class Block(Base):
    __tablename__ = 'blocks'

    id = Column(Integer, primary_key=True)
    post_id = Column(Integer, ForeignKey('posts.id'), nullable=False)
    position = Column(Integer, nullable=False)
    type = Column(String(20), nullable=False)
    text = Column(String(2000))
    src = Column(String(500))

    __mapper_args__ = {'polymorphic_on': type, 'polymorphic_identity': 'block'}


class TextBlock(Block):
    __mapper_args__ = {'polymorphic_identity': 'text'}


class ImageBlock(Block):
    __mapper_args__ = {'polymorphic_identity': 'image'}


class Comment(Base):
    __tablename__ = 'comments'

    id = Column(Integer, primary_key=True)
    post_id = Column(Integer, ForeignKey('posts.id'), nullable=False)
    body = Column(String(1000), nullable=False)
    rating = Column(Integer, nullable=False, default=0)


def seed(session: Session):
    ada = User(name="Ada", email="ada@example.com")
    post = Post(title="Hello", author=ada)
    session.add_all([ada, post])
    session.flush()
    session.add_all([
        TextBlock(post_id=post.id, position=1, text="Intro"),
        ImageBlock(post_id=post.id, position=2, src="cover.png"),
        TextBlock(post_id=post.id, position=3, text="Outro"),
    ])
    session.add_all([Comment(post_id=post.id, body=f"comment {i}", rating=i % 5) for i in range(20)])
    session.commit()
    return post


# Strawberry schema
pruner = Pruner(adapter=SQLAlchemyAdapter(), cache=MemoryCache())


@strawberry.type
class Query:
    posts = pruned_field(
        lambda info: info.context["session"].query(Post).order_by(Post.id),
        definition={"title": True, "author": ["name"]},
        pruner=pruner,
    )


schema = strawberry.Schema(query=Query)


def main():
    logging.basicConfig(level=logging.DEBUG)
    engine = create_engine("sqlite://", future=True)
    Base.metadata.create_all(engine)

    with Session(engine, expire_on_commit=False) as session:
        post = seed(session)

        definition = {
            "title": True,
            "author": {"name": True},
            "comments": {"$order_by": "-rating", "$limit": 3, "body": True, "rating": True},
            "blocks": {"_text": ["text"], "_image": ["src"]},
        }
        print(json.dumps(pruner.prune_object(post, definition), indent=2))

        # cached result stays stale until the author is invalidated
        post.author.name = "Ada L."
        session.commit()
        print(pruner.prune_object(post, definition)["author"])
        pruner.invalidate(post.author)
        print(pruner.prune_object(post, definition)["author"])

        result = schema.execute_sync(
            'query { posts(prune: ["title", {blocks: {_image: true}}]) }',
            context_value={"session": session},
        )
        print(json.dumps(result.data, indent=2))


if __name__ == "__main__":
    main()
