"""
Typed records produced by the directory scrapers.
"""

import re
from dataclasses import dataclass, field, fields
from typing import Dict, Any, Iterator, List, Optional, Tuple


_NON_ALPHANUMERIC = re.compile(r'[^a-zA-Z0-9]+')
_WHITESPACE = re.compile(r'\s+')


def normalize_title(title: str) -> str:
    """
    Normalize an attribute label so lookups ignore case and punctuation.

    Non-alphanumeric runs become a single space, the result is lower-cased
    and trimmed, and remaining whitespace runs become a single dash.

    Examples:
        "Mailing Address" => "mailing-address"
        "Mailing   | Address  " => "mailing-address"
        "E-Mail:" => "e-mail"
    """
    return _WHITESPACE.sub('-', _NON_ALPHANUMERIC.sub(' ', title or '').lower().strip())


class AttributeMap:
    """
    Ordered mapping of normalized label to value.

    Keys are normalized on every write and lookup. `set` replaces a value in
    place, `setdefault` keeps the first value, and `merge` only adds missing
    labels unless asked to overwrite.
    """

    def __init__(self, items: Optional[List[Tuple[str, str]]] = None):
        self._data: Dict[str, str] = {}
        for label, value in items or []:
            self.set(label, value)

    def set(self, label: str, value: str) -> None:
        self._data[normalize_title(label)] = value

    def setdefault(self, label: str, value: str) -> str:
        return self._data.setdefault(normalize_title(label), value)

    def get(self, label: str, default: Optional[str] = None) -> Optional[str]:
        return self._data.get(normalize_title(label), default)

    def pop(self, label: str, default: str = '') -> str:
        return self._data.pop(normalize_title(label), default)

    def merge(self, other: 'AttributeMap', overwrite: bool = False) -> None:
        for label, value in other.items():
            if overwrite or label not in self._data:
                self._data[label] = value

    def items(self) -> List[Tuple[str, str]]:
        return list(self._data.items())

    def labels(self) -> List[str]:
        return list(self._data)

    def to_list(self) -> List[List[str]]:
        return [[label, value] for label, value in self._data.items()]

    @classmethod
    def from_list(cls, pairs: List[List[str]]) -> 'AttributeMap':
        return cls([(label, value) for label, value in pairs or []])

    def __contains__(self, label: object) -> bool:
        return isinstance(label, str) and normalize_title(label) in self._data

    def __iter__(self) -> Iterator[str]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, AttributeMap):
            return NotImplemented
        return self.items() == other.items()

    def __repr__(self) -> str:
        return f"AttributeMap({self.items()!r})"


@dataclass(frozen=True)
class DirectoryEntry:
    """One row of a directory search page."""

    id: str
    name: str = ''
    job_title: str = ''
    department: str = ''
    college: str = ''
    phone: str = ''

    def to_dict(self) -> Dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self)}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'DirectoryEntry':
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in data.items() if k in known})


@dataclass
class FullProfile:
    """Full profile from a person's detail page."""

    name: str = ''
    classification: str = ''
    college: str = ''
    major: str = ''
    email: str = ''
    title: str = ''
    department: str = ''
    mailing_address: str = ''
    building: str = ''
    phone: str = ''
    other: AttributeMap = field(default_factory=AttributeMap)

    def to_dict(self) -> Dict[str, Any]:
        data = {f.name: getattr(self, f.name) for f in fields(self) if f.name != 'other'}
        data['other'] = self.other.to_list()
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'FullProfile':
        known = {f.name for f in fields(cls)} - {'other'}
        profile = cls(**{k: v for k, v in data.items() if k in known})
        profile.other = AttributeMap.from_list(data.get('other') or [])
        return profile
