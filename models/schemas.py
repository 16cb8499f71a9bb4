"""Pydantic schemas for paged query results."""

from __future__ import annotations

from typing import Dict, List, Optional

from pydantic import BaseModel, Field


class Link(BaseModel):
    """Self-contained reference to an adjacent page."""

    rel: str = Field(..., description="Either 'prev' or 'next'.")
    href: str = Field(..., description="Relative URL carrying filters and paging state.")
    method: str = "GET"


class Page(BaseModel):
    """One page of flat records plus optional neighbour links."""

    values: List[Dict[str, str]] = Field(default_factory=list)
    prev: Optional[Link] = None
    next: Optional[Link] = None
