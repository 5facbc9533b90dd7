import re
import unicodedata
from typing import Dict, Iterable, Mapping, Optional

from .models import Person, PersonMatch, StationAssignment

_BIDI_MARKS_RE = re.compile("[\u200e\u200f]")
_WHITESPACE_RE = re.compile(r"\s+")


def normalize_name(value: Optional[str]) -> str:
    decomposed = unicodedata.normalize("NFD", value or "")
    stripped = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    stripped = _BIDI_MARKS_RE.sub("", stripped)
    return _WHITESPACE_RE.sub(" ", stripped).strip().lower()


class DirectoryResolver:
    """Exact-match name lookup against the people directory.

    Lookup order: saved alias, email, English or Hebrew full name, then an
    operator-chosen resolution for this import. Anything looser belongs to
    the identity service, not here.
    """

    def __init__(
        self,
        people: Iterable[Person],
        aliases: Optional[Mapping[str, StationAssignment]] = None,
        resolutions: Optional[Mapping[str, str]] = None,
    ):
        self._people_by_id: Dict[str, Person] = {}
        self._by_email: Dict[str, Person] = {}
        self._by_name: Dict[str, Person] = {}
        for person in people:
            self._people_by_id[person.id] = person
            if person.email:
                self._by_email.setdefault(normalize_name(person.email), person)
            for name in (person.fullName, person.fullNameHe):
                if name:
                    self._by_name.setdefault(normalize_name(name), person)
        self._aliases = {
            normalize_name(alias): entry for alias, entry in (aliases or {}).items()
        }
        self._resolutions = {
            normalize_name(raw): person_id for raw, person_id in (resolutions or {}).items()
        }

    @staticmethod
    def _display_name(person: Person) -> str:
        return person.fullName or person.email or person.id

    def __call__(self, name: str) -> PersonMatch:
        key = normalize_name(name)
        if not key:
            return PersonMatch()
        alias = self._aliases.get(key)
        if alias:
            return PersonMatch(personId=alias.personId, displayName=alias.personDisplayName)
        person = self._by_email.get(key) or self._by_name.get(key)
        if person is None and key in self._resolutions:
            person = self._people_by_id.get(self._resolutions[key])
        if person is None:
            return PersonMatch()
        return PersonMatch(personId=person.id, displayName=self._display_name(person))

    def new_aliases(self) -> Dict[str, StationAssignment]:
        """Operator resolutions that are not yet saved as aliases."""
        created: Dict[str, StationAssignment] = {}
        for key, person_id in self._resolutions.items():
            person = self._people_by_id.get(person_id)
            if not person or key in self._aliases:
                continue
            created[key] = StationAssignment(
                personId=person.id, personDisplayName=self._display_name(person)
            )
        return created
