#!/usr/bin/env python
# -*- coding: UTF-8 -*-
#
# Copyright 2023-2026 NXP
#
# SPDX-License-Identifier: BSD-3-Clause

"""Enumeration base of pin modes, transfer modes and protocol identifiers.

Every member is a ``(tag, label, description)`` triple. The tag is the value
used on the wire, the label is the name used in configuration files and
console commands.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional, Union

from typing_extensions import Self

from probehal.exceptions import ProbeHalKeyError, ProbeHalTypeError


@dataclass(frozen=True)
class HalEnumMember:
    """Value of a ``HalEnum`` member."""

    tag: int
    label: str
    description: Optional[str] = None


class HalEnum(HalEnumMember, Enum):
    """Enumeration looked up by tag or by case-insensitive label.

    A member compares equal to its tag and to its label, so ``PinMode.INPUT == "Input"``
    holds for a value read from a configuration file.
    """

    def __eq__(self, other: object) -> bool:
        return other in (self.tag, self.label)

    def __hash__(self) -> int:
        return hash((self.tag, self.label, self.description))

    @classmethod
    def _find(cls, matches: Callable[["HalEnum"], bool], what: str) -> Self:
        for member in cls:
            if matches(member):
                return member
        raise ProbeHalKeyError(f"There is no {cls.__name__} item with {what} defined")

    @classmethod
    def labels(cls) -> list[str]:
        """Get labels of all members."""
        return [member.label for member in cls]

    @classmethod
    def tags(cls) -> list[int]:
        """Get tags of all members."""
        return [member.tag for member in cls]

    @classmethod
    def from_tag(cls, tag: int) -> Self:
        """Get member by tag.

        :param tag: Tag of the member.
        :raises ProbeHalKeyError: No member has the tag.
        :return: The member.
        """
        return cls._find(lambda member: member.tag == tag, f"tag {tag}")

    @classmethod
    def from_label(cls, label: str) -> Self:
        """Get member by label, case-insensitive.

        :param label: Label of the member.
        :raises ProbeHalKeyError: No member has the label.
        :return: The member.
        """
        if not isinstance(label, str):
            raise ProbeHalKeyError("Label must be string")
        wanted = label.upper()
        return cls._find(lambda member: member.label.upper() == wanted, f"label {label}")

    @classmethod
    def from_attr(cls, attribute: Union[int, str]) -> Self:
        """Get member by tag (integer) or label (string).

        :param attribute: Tag or label.
        :return: The member.
        """
        if isinstance(attribute, int):
            return cls.from_tag(attribute)
        return cls.from_label(attribute)

    @classmethod
    def get_label(cls, tag: int) -> str:
        """Get label of the member with given tag.

        :param tag: Tag of the member.
        :return: Label of the member.
        """
        return cls.from_tag(tag).label

    @classmethod
    def contains(cls, obj: Union[int, str]) -> bool:
        """Check whether a member with given tag or label exists.

        :param obj: Tag or label.
        :raises ProbeHalTypeError: Neither integer nor string given.
        :return: True if the member exists.
        """
        if not isinstance(obj, (int, str)):
            raise ProbeHalTypeError("Object must be either string or integer")
        try:
            cls.from_attr(obj)
        except ProbeHalKeyError:
            return False
        return True
