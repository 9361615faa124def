"""Static vocabulary mapping search terms to Pokemon types and stat thresholds.

The dictionary is built once at startup and handed to the query parser.
Terms whose payload (types + thresholds) is identical share one
``SemanticMapping`` object, so two synonyms of the same concept in a query
only contribute once.
"""

from collections.abc import Mapping
from dataclasses import dataclass, field
from functools import lru_cache
from types import MappingProxyType
from typing import Any

from pokedex.models.pokemon import STAT_NAMES

THRESHOLD_KEYS: frozenset[str] = frozenset(
    f"{bound}_{stat}" for bound in ("min", "max") for stat in STAT_NAMES
)


@dataclass(frozen=True, eq=False)
class SemanticMapping:
    """One concept: the terms naming it plus the filters it implies.

    Compared by identity; the dictionary guarantees one object per concept.
    """

    concept: str
    terms: tuple[str, ...]
    synonyms: tuple[str, ...] = ()
    types: tuple[str, ...] = ()
    thresholds: Mapping[str, int] = field(default_factory=lambda: MappingProxyType({}))

    def __repr__(self) -> str:
        return f"<SemanticMapping {self.concept} types={list(self.types)} thresholds={dict(self.thresholds)}>"


class SemanticDictionary:
    """Immutable term -> mapping index."""

    def __init__(self, index: Mapping[str, SemanticMapping]) -> None:
        self._index: Mapping[str, SemanticMapping] = MappingProxyType(dict(index))
        seen: dict[int, SemanticMapping] = {}
        for mapping in self._index.values():
            seen.setdefault(id(mapping), mapping)
        self._mappings: tuple[SemanticMapping, ...] = tuple(seen.values())

    @classmethod
    def from_entries(cls, entries: Mapping[str, Mapping[str, Any]]) -> "SemanticDictionary":
        """Build a dictionary from raw ``term -> {synonyms, types, characteristics}`` data.

        Raises:
            ValueError: If an entry uses an unknown threshold key.
        """
        clusters: dict[tuple[Any, ...], dict[str, Any]] = {}
        term_to_signature: dict[str, tuple[Any, ...]] = {}

        for raw_term, entry in entries.items():
            term = raw_term.lower().strip()
            types = tuple(t.lower() for t in entry.get("types", ()))
            thresholds = dict(entry.get("characteristics", {}))
            unknown = set(thresholds) - THRESHOLD_KEYS
            if unknown:
                raise ValueError(f"Unknown threshold keys for '{term}': {sorted(unknown)}")

            signature = (types, tuple(sorted(thresholds.items())))
            cluster = clusters.setdefault(
                signature,
                {"concept": term, "terms": [], "synonyms": [], "types": types, "thresholds": thresholds},
            )
            cluster["terms"].append(term)
            for synonym in entry.get("synonyms", ()):
                synonym = synonym.lower()
                if synonym not in cluster["synonyms"]:
                    cluster["synonyms"].append(synonym)
            term_to_signature[term] = signature

        mappings = {
            signature: SemanticMapping(
                concept=data["concept"],
                terms=tuple(data["terms"]),
                synonyms=tuple(data["synonyms"]),
                types=data["types"],
                thresholds=MappingProxyType(data["thresholds"]),
            )
            for signature, data in clusters.items()
        }
        return cls({term: mappings[sig] for term, sig in term_to_signature.items()})

    def lookup(self, term: str) -> SemanticMapping | None:
        return self._index.get(term)

    @property
    def mappings(self) -> tuple[SemanticMapping, ...]:
        """Distinct mappings in first-seen order."""
        return self._mappings

    def __contains__(self, term: object) -> bool:
        return term in self._index


# Raw vocabulary: direct type names, type synonyms, then stat characteristics
DEFAULT_ENTRIES: dict[str, dict[str, Any]] = {
    "fire": {"synonyms": ["flame", "burn", "heat"], "types": ["fire"]},
    "water": {"synonyms": ["aqua", "ocean", "sea"], "types": ["water"]},
    "electric": {"synonyms": ["bolt", "lightning", "thunder"], "types": ["electric"]},
    "grass": {"synonyms": ["leaf", "plant", "nature"], "types": ["grass"]},
    "ice": {"synonyms": ["frost", "freeze", "cold"], "types": ["ice"]},
    "ground": {"synonyms": ["earth", "soil", "dirt"], "types": ["ground"]},
    "flying": {"synonyms": ["wind", "air", "sky"], "types": ["flying"]},
    "psychic": {"synonyms": ["mind", "mental", "brain"], "types": ["psychic"]},
    "bug": {"synonyms": ["insect", "beetle"], "types": ["bug"]},
    "rock": {"synonyms": ["stone", "mineral"], "types": ["rock"]},
    "ghost": {"synonyms": ["spirit", "phantom"], "types": ["ghost"]},
    "dragon": {"synonyms": ["wyrm", "drake"], "types": ["dragon"]},
    "dark": {"synonyms": ["shadow", "evil"], "types": ["dark"]},
    "steel": {"synonyms": ["metal", "iron"], "types": ["steel"]},
    "fairy": {"synonyms": ["magic", "mystical"], "types": ["fairy"]},
    "poison": {"synonyms": ["toxic", "venom"], "types": ["poison"]},
    "fighting": {"synonyms": ["martial", "combat"], "types": ["fighting"]},
    "normal": {"synonyms": [], "types": ["normal"]},
    "flame": {"synonyms": ["fire", "burn", "heat"], "types": ["fire"]},
    "blaze": {"synonyms": ["fire", "flame"], "types": ["fire"]},
    "inferno": {"synonyms": ["fire", "flame"], "types": ["fire"]},
    "ember": {"synonyms": ["fire", "flame"], "types": ["fire"]},
    "scorch": {"synonyms": ["fire", "flame"], "types": ["fire"]},
    "aqua": {"synonyms": ["water", "ocean", "sea"], "types": ["water"]},
    "hydro": {"synonyms": ["water", "aqua"], "types": ["water"]},
    "marine": {"synonyms": ["water", "ocean"], "types": ["water"]},
    "splash": {"synonyms": ["water"], "types": ["water"]},
    "wave": {"synonyms": ["water"], "types": ["water"]},
    "bolt": {"synonyms": ["electric", "lightning", "thunder"], "types": ["electric"]},
    "shock": {"synonyms": ["electric", "lightning"], "types": ["electric"]},
    "thunder": {"synonyms": ["electric", "lightning"], "types": ["electric"]},
    "lightning": {"synonyms": ["electric", "thunder"], "types": ["electric"]},
    "spark": {"synonyms": ["electric"], "types": ["electric"]},
    "zap": {"synonyms": ["electric"], "types": ["electric"]},
    "leaf": {"synonyms": ["grass", "plant", "nature"], "types": ["grass"]},
    "plant": {"synonyms": ["grass", "leaf"], "types": ["grass"]},
    "nature": {"synonyms": ["grass", "plant"], "types": ["grass"]},
    "forest": {"synonyms": ["grass", "plant"], "types": ["grass"]},
    "bloom": {"synonyms": ["grass", "plant"], "types": ["grass"]},
    "frost": {"synonyms": ["ice", "freeze", "cold"], "types": ["ice"]},
    "freeze": {"synonyms": ["ice", "frost"], "types": ["ice"]},
    "cold": {"synonyms": ["ice", "frost"], "types": ["ice"]},
    "snow": {"synonyms": ["ice"], "types": ["ice"]},
    "blizzard": {"synonyms": ["ice"], "types": ["ice"]},
    "earth": {"synonyms": ["ground", "soil", "dirt"], "types": ["ground"]},
    "soil": {"synonyms": ["ground", "earth"], "types": ["ground"]},
    "dirt": {"synonyms": ["ground", "earth"], "types": ["ground"]},
    "sand": {"synonyms": ["ground"], "types": ["ground"]},
    "mud": {"synonyms": ["ground"], "types": ["ground"]},
    "wind": {"synonyms": ["flying", "air", "sky"], "types": ["flying"]},
    "air": {"synonyms": ["flying", "wind"], "types": ["flying"]},
    "sky": {"synonyms": ["flying", "wind"], "types": ["flying"]},
    "wing": {"synonyms": ["flying"], "types": ["flying"]},
    "feather": {"synonyms": ["flying"], "types": ["flying"]},
    "mind": {"synonyms": ["psychic", "mental", "brain"], "types": ["psychic"]},
    "mental": {"synonyms": ["psychic", "mind"], "types": ["psychic"]},
    "brain": {"synonyms": ["psychic", "mind"], "types": ["psychic"]},
    "telekinesis": {"synonyms": ["psychic"], "types": ["psychic"]},
    "insect": {"synonyms": ["bug", "beetle"], "types": ["bug"]},
    "beetle": {"synonyms": ["bug", "insect"], "types": ["bug"]},
    "spider": {"synonyms": ["bug"], "types": ["bug"]},
    "ant": {"synonyms": ["bug"], "types": ["bug"]},
    "stone": {"synonyms": ["rock", "mineral"], "types": ["rock"]},
    "mineral": {"synonyms": ["rock", "stone"], "types": ["rock"]},
    "crystal": {"synonyms": ["rock"], "types": ["rock"]},
    "gem": {"synonyms": ["rock"], "types": ["rock"]},
    "spirit": {"synonyms": ["ghost", "phantom"], "types": ["ghost"]},
    "phantom": {"synonyms": ["ghost", "spirit"], "types": ["ghost"]},
    "spook": {"synonyms": ["ghost"], "types": ["ghost"]},
    "haunt": {"synonyms": ["ghost"], "types": ["ghost"]},
    "wyrm": {"synonyms": ["dragon", "drake"], "types": ["dragon"]},
    "drake": {"synonyms": ["dragon", "wyrm"], "types": ["dragon"]},
    "serpent": {"synonyms": ["dragon"], "types": ["dragon"]},
    "shadow": {"synonyms": ["dark", "evil"], "types": ["dark"]},
    "evil": {"synonyms": ["dark", "shadow"], "types": ["dark"]},
    "night": {"synonyms": ["dark"], "types": ["dark"]},
    "metal": {"synonyms": ["steel", "iron"], "types": ["steel"]},
    "iron": {"synonyms": ["steel", "metal"], "types": ["steel"]},
    "chrome": {"synonyms": ["steel"], "types": ["steel"]},
    "magic": {"synonyms": ["fairy", "mystical"], "types": ["fairy"]},
    "mystical": {"synonyms": ["fairy", "magic"], "types": ["fairy"]},
    "enchanted": {"synonyms": ["fairy"], "types": ["fairy"]},
    "toxic": {"synonyms": ["poison", "venom"], "types": ["poison"]},
    "venom": {"synonyms": ["poison", "toxic"], "types": ["poison"]},
    "acid": {"synonyms": ["poison"], "types": ["poison"]},
    "martial": {"synonyms": ["fighting", "combat"], "types": ["fighting"]},
    "combat": {"synonyms": ["fighting", "martial"], "types": ["fighting"]},
    "warrior": {"synonyms": ["fighting"], "types": ["fighting"]},
    "brawl": {"synonyms": ["fighting"], "types": ["fighting"]},
    # Stat characteristics
    "fast": {"synonyms": ["quick", "speedy", "swift"], "characteristics": {"min_speed": 100}},
    "quick": {"synonyms": ["fast", "speedy"], "characteristics": {"min_speed": 90}},
    "speedy": {"synonyms": ["fast", "quick"], "characteristics": {"min_speed": 95}},
    "swift": {"synonyms": ["fast", "quick"], "characteristics": {"min_speed": 85}},
    "tank": {
        "synonyms": ["tanky", "bulky", "defensive"],
        "characteristics": {"min_hp": 80, "min_defense": 80},
    },
    "tanky": {"synonyms": ["tank", "bulky"], "characteristics": {"min_hp": 75, "min_defense": 75}},
    "bulky": {"synonyms": ["tank", "tanky"], "characteristics": {"min_hp": 85, "min_defense": 70}},
    "defensive": {"synonyms": ["tank", "bulky"], "characteristics": {"min_defense": 90}},
    "glass": {
        "synonyms": ["fragile", "frail"],
        "characteristics": {"min_attack": 100, "max_defense": 70},
    },
    "fragile": {"synonyms": ["glass", "frail"], "characteristics": {"max_defense": 65}},
    "frail": {"synonyms": ["glass", "fragile"], "characteristics": {"max_defense": 60}},
    "strong": {"synonyms": ["powerful", "mighty"], "characteristics": {"min_attack": 100}},
    "powerful": {"synonyms": ["strong", "mighty"], "characteristics": {"min_attack": 110}},
    "mighty": {"synonyms": ["strong", "powerful"], "characteristics": {"min_attack": 120}},
    "tough": {"synonyms": ["hardy", "resilient"], "characteristics": {"min_hp": 90}},
    "hardy": {"synonyms": ["tough", "resilient"], "characteristics": {"min_hp": 85, "min_defense": 70}},
    "resilient": {
        "synonyms": ["tough", "hardy"],
        "characteristics": {"min_hp": 80, "min_defense": 75},
    },
}


@lru_cache
def default_dictionary() -> SemanticDictionary:
    """The built-in Pokemon vocabulary, constructed once per process."""
    return SemanticDictionary.from_entries(DEFAULT_ENTRIES)
