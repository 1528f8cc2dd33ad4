"""Routines and programs."""

from __future__ import annotations

from pydantic import Field

from gymsync.models._base import EntityModel


class Routine(EntityModel):
    """An ordered list of exercise types performed in one session."""

    name: str
    exercise_type_ids: list[str] = Field(default_factory=list)


class Program(EntityModel):
    """An ordered rotation of routines."""

    name: str
    routine_ids: list[str] = Field(default_factory=list)
