from typing import Optional

from sqlalchemy import String, Text, Integer
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    pass


# ──────────────────────────── Models ────────────────────────────


class Book(Base):
    __tablename__ = "books"
    # ids of deleted rows are never handed out again
    __table_args__ = {"sqlite_autoincrement": True}

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    title: Mapped[str] = mapped_column(String(500), nullable=False)
    author: Mapped[str] = mapped_column(String(200), nullable=False, index=True)
    year: Mapped[Optional[int]] = mapped_column(Integer, nullable=True, index=True)
    isbn: Mapped[Optional[str]] = mapped_column(String(17), nullable=True)
    genre: Mapped[Optional[str]] = mapped_column(String(100), nullable=True, index=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    def __repr__(self) -> str:
        return f"<Book {self.id} '{self.title}'>"
