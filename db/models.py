"""
Database models for trackx-crawler using SQLAlchemy 2.0 style.

Models:
- Site: One website to crawl, with its claim/outcome state
- Run: One crawler invocation with its aggregate statistics

The tables themselves are created by db/schema.sql at bootstrap; these
mappings must stay in sync with it.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, DateTime, Integer, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all database models."""

    pass


class Site(Base):
    """
    Website to crawl.

    Attributes:
        id: Primary key, assigned on insert
        url: Site as imported (host or URL, not necessarily unique)
        handled: Set the moment a worker claims the site
        error: Set when the crawl attempt failed
        resolved: Final URL after following redirects
    """

    __tablename__ = "site"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    url: Mapped[str] = mapped_column(Text, nullable=False)
    handled: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    error: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    resolved: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    def __repr__(self) -> str:
        """String representation of Site."""
        return f"<Site(id={self.id}, url='{self.url}', handled={self.handled}, error={self.error})>"


class Run(Base):
    """
    Crawler run.

    Attributes:
        id: Primary key
        ts_start: When the run started
        ts_end: When the run finished (None while running)
        options: JSON snapshot of the effective run configuration
        site_count: Sites claimed
        page_count: Navigations completed, including followed links
        skipped_count: Sites that failed resolution or crawl
        error: Set when the run hit an unrecovered error
    """

    __tablename__ = "run"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    ts_start: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    ts_end: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    options: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    site_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    page_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    skipped_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    error: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    def __repr__(self) -> str:
        """String representation of Run."""
        return (
            f"<Run(id={self.id}, sites={self.site_count}, pages={self.page_count}, "
            f"skipped={self.skipped_count}, error={self.error})>"
        )
